#!/usr/bin/python3
# -*- coding: utf-8 -*-
#
# Tests for exclusion rules
#
# Copyright (c) 2005 JAS
#
# Author: Petr Vokac <vokac@kmlinux.fjfi.cvut.cz>
#
# $Id$
#
from twisted.trial import unittest

from ppgreylist.Base import ParamError
from ppgreylist.Config import EffectiveConfig
from ppgreylist.Country import CountryPolicy
from ppgreylist.Exclusion import ExclusionEngine
from ppgreylist.List import ExclusionList
from ppgreylist.P0f import P0fPolicy
from ppgreylist.session import Connection, Notes, Transaction


class TestExclusionList(unittest.SynchronousTestCase):

    def setUp(self):
        self.exclusions = ExclusionList.parse([
            "# exclusion list",
            "/\\.example\\.org$/",
            "192.168.1.2",
            "10.0.0.0/8   # internal",
            "MX.Example.com",
            "",
            ])

    def test_size(self):
        self.assertEqual(4, len(self.exclusions))

    def test_regexp(self):
        self.assertNotEqual(None, self.exclusions.match("172.16.0.1", "mail.example.org"))
        self.assertNotEqual(None, self.exclusions.match("172.16.0.1", "MAIL.EXAMPLE.ORG"))
        self.assertEqual(None, self.exclusions.match("172.16.0.1", "mail.example.net"))

    def test_address(self):
        self.assertNotEqual(None, self.exclusions.match("192.168.1.2"))
        self.assertNotEqual(None, self.exclusions.match("10.20.30.40"))
        self.assertEqual(None, self.exclusions.match("192.168.1.3"))

    def test_hostname(self):
        self.assertNotEqual(None, self.exclusions.match("172.16.0.1", "mx.example.com"))
        self.assertEqual(None, self.exclusions.match("172.16.0.1", "mx2.example.com"))

    def test_invalid_address(self):
        self.assertEqual(None, self.exclusions.match("unknown", None))

    def test_invalid_regexp(self):
        with self.assertLogs("ppgreylist", "WARNING"):
            exclusions = ExclusionList.parse([ "/[/", "192.168.1.2" ])
        self.assertEqual(1, len(exclusions))

    def test_load_missing_file(self):
        fileName = self.mktemp()
        with open(fileName, "w") as f:
            f.write("/\\.example\\.org$/\n")
        with self.assertLogs("ppgreylist", "WARNING"):
            exclusions = ExclusionList.load([ self.mktemp(), fileName ])
        self.assertEqual(1, len(exclusions))
        self.assertNotEqual(None, exclusions.match("172.16.0.1", "mail.example.org"))


class TestP0fPolicy(unittest.SynchronousTestCase):

    def test_genre(self):
        policy = P0fPolicy.parse("genre,windows")
        self.assertTrue(policy.match({ 'genre': 'Windows', 'detail': 'XP' }))
        self.assertFalse(policy.match({ 'genre': 'Linux' }))
        self.assertFalse(policy.match(None))
        self.assertFalse(policy.match({}))

    def test_detail_substring(self):
        policy = P0fPolicy.parse("detail,XP")
        self.assertTrue(policy.match({ 'genre': 'Windows', 'detail': 'XP SP2' }))

    def test_distance(self):
        policy = P0fPolicy.parse("genre,windows,distance,22")
        self.assertTrue(policy.match({ 'genre': 'Linux', 'distance': 23 }))
        self.assertFalse(policy.match({ 'genre': 'Linux', 'distance': '22' }))
        self.assertFalse(policy.match({ 'genre': 'Linux', 'distance': 'far' }))

    def test_uptime(self):
        policy = P0fPolicy.parse("uptime,10")
        self.assertTrue(policy.match({ 'uptime': 5 }))
        self.assertFalse(policy.match({ 'uptime': 10 }))

    def test_invalid(self):
        self.assertRaises(ParamError, P0fPolicy.parse, "genre")
        self.assertRaises(ParamError, P0fPolicy.parse, "distance,far")
        with self.assertLogs("ppgreylist", "WARNING"):
            self.assertRaises(ParamError, P0fPolicy.parse, "colour,blue")


class TestCountryPolicy(unittest.SynchronousTestCase):

    def test_match(self):
        policy = CountryPolicy.parse("US, ca")
        self.assertTrue(policy.match("US"))
        self.assertTrue(policy.match("ca"))
        self.assertFalse(policy.match("CZ"))
        self.assertFalse(policy.match(None))


class TestExclusionEngine(unittest.SynchronousTestCase):

    def setUp(self):
        self.engine = ExclusionEngine(ExclusionList.parse([ "/\\.example\\.org$/" ]))
        self.config = EffectiveConfig()

    def test_not_excluded(self):
        connection = Connection("192.0.2.1", "mail.example.net")
        self.assertFalse(self.engine.isExcluded(connection, self.config))

    def test_static_list(self):
        connection = Connection("192.0.2.1", "mail.example.org")
        self.assertTrue(self.engine.isExcluded(connection, self.config))

    def test_relay_client(self):
        connection = Connection("192.0.2.1", relay_client=True)
        self.assertEqual("relay client", self.engine.getReason(connection, self.config))

    def test_whitelisted_host(self):
        connection = Connection("192.0.2.1", notes=Notes(whitelisthost=1))
        self.assertTrue(self.engine.isExcluded(connection, self.config))

    def test_whitelisted_sender(self):
        connection = Connection("192.0.2.1")
        transaction = Transaction("a@b.cz", notes=Notes(whitelistsender=1))
        self.assertTrue(self.engine.isExcluded(connection, self.config, transaction))
        self.assertFalse(self.engine.isExcluded(connection, self.config, Transaction("a@b.cz")))

    def test_p0f(self):
        config = EffectiveConfig(p0f="genre,windows")
        windows = Connection("192.0.2.1", notes=Notes(p0f={ 'genre': 'Windows' }))
        linux = Connection("192.0.2.1", notes=Notes(p0f={ 'genre': 'Linux' }))
        unknown = Connection("192.0.2.1")
        self.assertFalse(self.engine.isExcluded(windows, config))
        self.assertTrue(self.engine.isExcluded(linux, config))
        self.assertTrue(self.engine.isExcluded(unknown, config))

    def test_geoip(self):
        config = EffectiveConfig(geoip="US,CA")
        self.assertTrue(self.engine.isExcluded(Connection("192.0.2.1", notes=Notes(geoip_country='US')), config))
        self.assertFalse(self.engine.isExcluded(Connection("192.0.2.1", notes=Notes(geoip_country='CZ')), config))
        self.assertFalse(self.engine.isExcluded(Connection("192.0.2.1"), config))

    def test_geoip_wins_over_other_rules(self):
        config = EffectiveConfig(p0f="genre,windows", geoip="US")
        connection = Connection("192.0.2.1", "mail.example.net",
                                notes=Notes(p0f={ 'genre': 'Windows' }, geoip_country='US'))
        self.assertEqual(None, self.engine.exclusions.match(connection.remote_ip, connection.remote_host))
        self.assertEqual("country US", self.engine.getReason(connection, config))

    def test_short_address_not_listed(self):
        engine = ExclusionEngine(ExclusionList.parse([ "0.0.0.10" ]))
        self.assertFalse(engine.isExcluded(Connection("10"), self.config))
        self.assertTrue(engine.isExcluded(Connection("0.0.0.10"), self.config))

    def test_invalid_policy_ignored(self):
        config = EffectiveConfig(p0f="distance,far")
        with self.assertLogs("ppgreylist", "ERROR"):
            self.assertFalse(self.engine.isExcluded(Connection("192.0.2.1"), config))
