#!/usr/bin/python3
# -*- coding: utf-8 -*-
#
# Country rule for greylisting
#
# Copyright (c) 2005 JAS
#
# Author: Petr Vokac <vokac@kmlinux.fjfi.cvut.cz>
#
# $Id$
#
import logging


__version__ = "$Revision$"

logger = logging.getLogger("ppgreylist")


class CountryPolicy(object):
    """Countries excluded from greylisting. Client country is resolved
    by GeoIP lookup before greylisting and passed in connection notes
    as two letter country code.

    Examples:
        # don't greylist mail from Czech Republic and Slovakia
        CountryPolicy.parse('CZ,SK')
    """

    def __init__(self, codes):
        self.codes = frozenset([ x.strip().upper() for x in codes if x.strip() != '' ])


    @classmethod
    def parse(cls, rule):
        return cls(str(rule).split(','))


    def match(self, country):
        if not country:
            return False
        return str(country).strip().upper() in self.codes
