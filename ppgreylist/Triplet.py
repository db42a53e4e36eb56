#!/usr/bin/python3
# -*- coding: utf-8 -*-
#
# Triplet key for greylisting database
#
# Copyright (c) 2005 JAS
#
# Author: Petr Vokac <vokac@kmlinux.fjfi.cvut.cz>
#
# $Id$
#
import logging
import netaddr
from ppgreylist.Base import KeyBuildError


__version__ = "$Revision$"

logger = logging.getLogger("ppgreylist")

KEY_SEPARATOR = ':'


def canonicalAddress(address):
    """Return IP address as decimal integer string. Raise KeyBuildError
    if address is not valid IPv4 or IPv6 literal."""
    try:
        return str(netaddr.IPAddress(str(address).strip(), flags=netaddr.INET_PTON).value)
    except (netaddr.AddrFormatError, ValueError, TypeError) as e:
        raise KeyBuildError("invalid client address \"%s\": %s" % (address, e))


def isLegacyAddress(component):
    """Textual IPv4 address used by old key format."""
    return netaddr.valid_ipv4(component, netaddr.INET_PTON)


def normalizeAddress(address):
    """Mail address used as key component: lower case without angle
    brackets, null sender "<>" is empty string."""
    if address == None:
        return ''
    address = str(address).strip()
    if address[:1] == '<' and address[-1:] == '>':
        address = address[1:-1]
    return address.strip().lower()



class TripletKeyBuilder(object):
    """Build greylisting database key from enabled dimensions in fixed
    order: client address, sender, recipient. Client address is stored
    in its integer form.

    Examples:
        # client address only (default configuration)
        TripletKeyBuilder().build(config, '192.168.0.1')
        -> '3232235521'
        # client address, sender and recipient
        TripletKeyBuilder().build(config, '192.168.0.1', 'a@b.cz', 'c@d.cz')
        -> '3232235521:a@b.cz:c@d.cz'
    """

    def build(self, config, remoteIp, sender = None, recipient = None):
        parts = []
        if config.getParam('remote_ip'):
            parts.append(canonicalAddress(remoteIp))
        if config.getParam('sender'):
            parts.append(normalizeAddress(sender))
        if config.getParam('recipient'):
            parts.append(normalizeAddress(recipient))

        if len(parts) == 0:
            raise KeyBuildError("at least one of remote_ip, sender, recipient has to be enabled")

        return KEY_SEPARATOR.join(parts)
