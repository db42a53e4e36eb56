#!/usr/bin/python3
# -*- coding: utf-8 -*-
#
# P0f fingerprint rule for greylisting
#
# Copyright (c) 2005 JAS
#
# Author: Petr Vokac <vokac@kmlinux.fjfi.cvut.cz>
#
# $Id$
#
import logging
from ppgreylist.Base import ParamError


__version__ = "$Revision$"

logger = logging.getLogger("ppgreylist")


class P0fPolicy(object):
    """Greylist only clients with matching OS fingerprint. Fingerprint is
    detected by p0f before greylisting and it is passed in connection
    notes as dictionary (see p0f-query.h p0f_response structure):
        genre ...... detected OS
        detail ..... details about detected OS (e.g. version)
        distance ... distance of sender
        link ....... link type
        uptime ..... uptime (not reliable)

    Rule is written as comma separated key,value pairs and one matching
    pair is enough:
        genre, detail, link .. case-insensitive substring
        distance ............. fingerprint distance is greater
        uptime ............... fingerprint uptime is smaller

    Examples:
        # greylist only windows
        P0fPolicy.parse('genre,windows')
        # greylist windows and everything more than 22 hops away
        P0fPolicy.parse('genre,windows,distance,22')
    """

    KEYS = ( 'genre', 'detail', 'uptime', 'link', 'distance' )
    NUMERIC = ( 'uptime', 'distance' )


    def __init__(self, rules):
        self.rules = dict(rules)


    @classmethod
    def parse(cls, rule):
        items = [ x.strip() for x in str(rule).split(',') ]
        if len(items) % 2 != 0:
            raise ParamError("p0f rule \"%s\" has to be list of key,value pairs" % rule)

        rules = {}
        for i in range(0, len(items), 2):
            key, value = items[i].lower(), items[i+1]
            if key not in cls.KEYS:
                logger.warning("unknown p0f key \"%s\" ignored" % key)
                continue
            if key in cls.NUMERIC:
                try:
                    value = int(value)
                except ValueError:
                    raise ParamError("p0f %s requires number, got \"%s\"" % (key, value))
            else:
                value = value.lower()
            rules[key] = value

        if len(rules) == 0:
            raise ParamError("p0f rule \"%s\" doesn't contain any valid key" % rule)

        return cls(rules)


    def match(self, fingerprint):
        """True if fingerprint match at least one rule."""
        if not fingerprint:
            return False

        for key, value in self.rules.items():
            actual = fingerprint.get(key)
            if actual == None:
                continue
            if key in self.NUMERIC:
                actual = self.__int(actual)
                if actual == None:
                    continue
            if key == 'distance':
                if actual > value:
                    logger.debug("p0f distance %s > %s" % (actual, value))
                    return True
            elif key == 'uptime':
                if actual < value:
                    logger.debug("p0f uptime %s < %s" % (actual, value))
                    return True
            elif value in str(actual).lower():
                logger.debug("p0f %s \"%s\" match \"%s\"" % (key, actual, value))
                return True

        return False


    def __int(self, value):
        try:
            return int(value)
        except (TypeError, ValueError):
            return None
