#!/usr/bin/python3
# -*- coding: utf-8 -*-
#
# Static exclusion list of hosts and addresses
#
# Copyright (c) 2005 JAS
#
# Author: Petr Vokac <vokac@kmlinux.fjfi.cvut.cz>
#
# $Id$
#
import logging
import re
import netaddr


__version__ = "$Revision$"

logger = logging.getLogger("ppgreylist")


def isNetwork(line):
    addr = line.split('/', 1)[0]
    return netaddr.valid_ipv4(addr, netaddr.INET_PTON) or netaddr.valid_ipv6(addr)



class ExclusionList(object):
    """Hosts excluded from greylisting. It is built once from files and
    not changed later, reloading creates new instance.

    File format is one entry per line, text after # is comment:
        /regexp/        ... matched against client hostname and address
        192.168.1.2     ... exact client address
        10.0.0.0/8      ... client network
        mx.example.com  ... exact client hostname (case-insensitive)
    """

    def __init__(self, networks = None, hosts = None, patterns = None):
        self.networks = netaddr.IPSet(networks or [])
        self.hosts = frozenset([ x.lower() for x in hosts or [] ])
        self.patterns = tuple(patterns or [])


    def __len__(self):
        return len(self.networks.iter_cidrs()) + len(self.hosts) + len(self.patterns)


    @classmethod
    def parse(cls, lines, source = '<string>'):
        """Create list from iterable of lines."""
        networks = []
        hosts = []
        patterns = []
        for lineno, line in enumerate(lines, 1):
            line = line.split('#', 1)[0].strip()
            if line == '':
                continue
            if len(line) > 1 and line[0] == '/' and line[-1] == '/':
                try:
                    patterns.append(re.compile(line[1:-1], re.IGNORECASE))
                except re.error as e:
                    logger.warning("%s:%i invalid regexp %s: %s" % (source, lineno, line, e))
            elif isNetwork(line):
                try:
                    networks.append(netaddr.IPNetwork(line))
                except (netaddr.AddrFormatError, ValueError) as e:
                    logger.warning("%s:%i invalid network %s: %s" % (source, lineno, line, e))
            else:
                hosts.append(line)
        return cls(networks, hosts, patterns)


    @classmethod
    def load(cls, fileNames):
        """Create list from files. File that can't be read is reported
        and skipped, entries from other files are still used."""
        networks = []
        hosts = []
        patterns = []
        for fileName in fileNames:
            try:
                with open(fileName, "r") as f:
                    part = cls.parse(f, fileName)
            except (IOError, OSError) as e:
                logger.warning("can't read exclusion list %s: %s" % (fileName, e))
                continue
            networks.extend(part.networks.iter_cidrs())
            hosts.extend(part.hosts)
            patterns.extend(part.patterns)
            logger.info("loaded %i exclusions from %s" % (len(part), fileName))
        return cls(networks, hosts, patterns)


    def match(self, address, hostname = None):
        """Return matching entry description or None."""
        if address:
            try:
                if netaddr.IPAddress(address, flags=netaddr.INET_PTON) in self.networks:
                    return "address %s" % address
            except (netaddr.AddrFormatError, ValueError, TypeError):
                logger.debug("can't compare invalid client address %s" % address)

        if hostname and hostname.lower() in self.hosts:
            return "hostname %s" % hostname

        for pattern in self.patterns:
            for value in (hostname, address):
                if value and pattern.search(value) != None:
                    return "%s matches /%s/" % (value, pattern.pattern)

        return None
