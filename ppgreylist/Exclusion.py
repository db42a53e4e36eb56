#!/usr/bin/python3
# -*- coding: utf-8 -*-
#
# Decide if connection is excluded from greylisting
#
# Copyright (c) 2005 JAS
#
# Author: Petr Vokac <vokac@kmlinux.fjfi.cvut.cz>
#
# $Id$
#
import logging
from ppgreylist.Base import ParamError
from ppgreylist.List import ExclusionList
from ppgreylist.P0f import P0fPolicy
from ppgreylist.Country import CountryPolicy


__version__ = "$Revision$"

logger = logging.getLogger("ppgreylist")


class ExclusionEngine(object):
    """Check connection against exclusion rules in this order, first
    matching rule wins:
        1. relay client, whitelisted host or sender
        2. p0f rule is configured and fingerprint doesn't match it
        3. geoip is configured and client country is in the list
        4. client address or hostname is in static exclusion list

    This class never touch greylisting database.
    """

    def __init__(self, exclusions = None):
        self.exclusions = exclusions if exclusions != None else ExclusionList()
        self.policies = {}


    def isExcluded(self, connection, config, transaction = None):
        reason = self.getReason(connection, config, transaction)
        if reason != None:
            logger.info("skipping greylisting for %s: %s" % (connection.remote_ip, reason))
            return True
        return False


    def getReason(self, connection, config, transaction = None):
        """Return text describing why connection is excluded or None."""
        if connection.relay_client:
            return "relay client"
        if connection.notes.get('whitelisthost'):
            return "whitelisted host"
        if transaction != None and transaction.notes.get('whitelistsender'):
            return "whitelisted sender"

        p0f = self.__policy(P0fPolicy, config.getParam('p0f'))
        if p0f != None and not p0f.match(connection.notes.get('p0f')):
            return "p0f fingerprint doesn't match %s" % config.getParam('p0f')

        geoip = self.__policy(CountryPolicy, config.getParam('geoip'))
        if geoip != None and geoip.match(connection.notes.get('geoip_country')):
            return "country %s" % connection.notes.get('geoip_country')

        return self.exclusions.match(connection.remote_ip, connection.remote_host)


    def __policy(self, clazz, rule):
        if not rule:
            return None
        key = (clazz, rule)
        if key not in self.policies:
            try:
                self.policies[key] = clazz.parse(rule)
            except ParamError as e:
                logger.error("invalid %s \"%s\" ignored: %s" % (clazz.__name__, rule, e))
                self.policies[key] = None
        return self.policies[key]
