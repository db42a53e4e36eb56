#!/usr/bin/python3
# -*- coding: utf-8 -*-
#
# Tests for greylisting state machine
#
# Copyright (c) 2005 JAS
#
# Author: Petr Vokac <vokac@kmlinux.fjfi.cvut.cz>
#
# $Id$
#
from twisted.trial import unittest
from zope.interface.verify import verifyObject

from ppgreylist.Base import StoreLockError
from ppgreylist.Config import EffectiveConfig
from ppgreylist.Greylist import Greylist, TripletRecord, ALLOW, DEFER, NEW, BLACK, GREY, WHITE
from ppgreylist.tools.store import IGreylistStore
from ppgreylist.test.helpers import MemoryStore


class TestTripletRecord(unittest.SynchronousTestCase):

    def test_encode(self):
        self.assertEqual("1000:1:2:3", TripletRecord(1000, 1, 2, 3).encode())

    def test_decode(self):
        record = TripletRecord.decode("1000:1:2:3")
        self.assertEqual((1000, 1, 2, 3), (record.timestamp, record.new, record.black, record.white))
        self.assertEqual(record, TripletRecord.decode(b"1000:1:2:3"))

    def test_decode_invalid(self):
        for value in (None, "", "1000:1:2", "1000:1:2:3:4", "abc:1:0:0", "1000:x:0:0"):
            self.assertIdentical(None, TripletRecord.decode(value))


class TestGreylist(unittest.SynchronousTestCase):

    def setUp(self):
        self.store = MemoryStore()
        self.greylist = Greylist(self.store)
        self.config = EffectiveConfig()

    def test_store_interface(self):
        self.assertTrue(verifyObject(IGreylistStore, self.store))

    def test_new_key(self):
        verdict = self.greylist.check("167772161", self.config, now=5000)
        self.assertIdentical(DEFER, verdict.action)
        self.assertEqual(NEW, verdict.state)
        self.assertEqual("This mail is temporarily denied", verdict.message)
        self.assertEqual("5000:1:0:0", self.store.data["167772161"])
        self.assertFalse(self.store.locked)

    def test_black_retries(self):
        self.greylist.check("10", self.config, now=0)
        self.assertEqual("0:1:0:0", self.store.data["10"])

        verdict = self.greylist.check("10", self.config, now=1000)
        self.assertIdentical(DEFER, verdict.action)
        self.assertEqual(BLACK, verdict.state)
        self.assertEqual("0:1:1:0", self.store.data["10"])

        verdict = self.greylist.check("10", self.config, now=3100)
        self.assertIdentical(ALLOW, verdict.action)
        self.assertEqual(GREY, verdict.state)
        self.assertEqual("0:1:1:0", self.store.data["10"])

    def test_grey_key_stays_unchanged(self):
        self.store.data["10"] = "0:1:4:0"
        for now in (3000, 10000, 100000):
            self.assertIdentical(ALLOW, self.greylist.check("10", self.config, now=now).action)
        self.assertEqual("0:1:4:0", self.store.data["10"])

    def test_white_renewal(self):
        self.store.data["10"] = "1000:1:0:2"
        config = EffectiveConfig(white_timeout=100000)
        verdict = self.greylist.check("10", config, now=1500)
        self.assertIdentical(ALLOW, verdict.action)
        self.assertEqual(WHITE, verdict.state)
        self.assertEqual("1500:1:0:3", self.store.data["10"])

    def test_white_expired_falls_to_black_check(self):
        self.store.data["10"] = "1000:1:0:2"
        config = EffectiveConfig(white_timeout=100, black_timeout=3000)
        verdict = self.greylist.check("10", config, now=1500)
        self.assertIdentical(DEFER, verdict.action)
        self.assertEqual(BLACK, verdict.state)
        self.assertEqual("1000:1:1:2", self.store.data["10"])

    def test_white_expired_and_grey(self):
        self.store.data["10"] = "1000:1:0:2"
        config = EffectiveConfig(white_timeout=100, black_timeout=300)
        verdict = self.greylist.check("10", config, now=1500)
        self.assertIdentical(ALLOW, verdict.action)
        self.assertEqual(GREY, verdict.state)
        self.assertEqual("1000:1:0:2", self.store.data["10"])

    def test_corrupt_record_is_recreated(self):
        self.store.data["10"] = "garbage"
        verdict = self.greylist.check("10", self.config, now=42)
        self.assertIdentical(DEFER, verdict.action)
        self.assertEqual("42:1:0:0", self.store.data["10"])

    def test_reject_disabled_records_but_allows(self):
        config = EffectiveConfig(reject=False)
        verdict = self.greylist.check("10", config, now=0)
        self.assertIdentical(ALLOW, verdict.action)
        self.assertEqual(NEW, verdict.state)
        self.assertEqual("0:1:0:0", self.store.data["10"])
        self.greylist.check("10", config, now=10)
        self.assertEqual("0:1:1:0", self.store.data["10"])

    def test_agree_still_defers(self):
        config = EffectiveConfig(reject='agree')
        self.assertIdentical(DEFER, self.greylist.check("10", config, now=0).action)

    def test_custom_message(self):
        config = EffectiveConfig(message="come back later")
        self.assertEqual("come back later", self.greylist.check("10", config, now=0).message)

    def test_lock_failure(self):
        store = MemoryStore(lockable=False)
        self.assertRaises(StoreLockError, Greylist(store).check, "10", self.config, 0)
        self.assertEqual({}, store.data)
