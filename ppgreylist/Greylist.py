#!/usr/bin/python3
# -*- coding: utf-8 -*-
#
# This module provide greylisting
#
# Copyright (c) 2005 JAS
#
# Author: Petr Vokac <vokac@kmlinux.fjfi.cvut.cz>
#
# $Id$
#
import logging
import time
from ppgreylist.Base import StoreLockError


__version__ = "$Revision$"

logger = logging.getLogger("ppgreylist")


class ACTION:
    def __init__(self, name):
        self.name = name

    def __str__(self):
        return self.name

    def __repr__(self):
        return "<action={}>".format(self.name)

ALLOW = ACTION("ALLOW")
DEFER = ACTION("DEFER")

del ACTION

# triplet states
NEW = 'new'
BLACK = 'black'
GREY = 'grey'
WHITE = 'white'



class TripletRecord(object):
    """Greylisting database record "timestamp:new:black:white".

    timestamp ... time of triplet creation (last use for white triplet)
    new ......... how many times the record was created
    black ....... deferred retries in initial delay period
    white ....... accepted mails while triplet was white
    """

    def __init__(self, timestamp, new = 1, black = 0, white = 0):
        self.timestamp = int(timestamp)
        self.new = int(new)
        self.black = int(black)
        self.white = int(white)


    @classmethod
    def decode(cls, value):
        """Return record or None if value is not valid record."""
        if value == None:
            return None
        if isinstance(value, bytes):
            value = value.decode('ascii', 'replace')
        parts = value.split(':')
        if len(parts) != 4:
            return None
        try:
            return cls(*[ int(x) for x in parts ])
        except ValueError:
            return None


    def encode(self):
        return "%i:%i:%i:%i" % (self.timestamp, self.new, self.black, self.white)


    def age(self, now):
        return now - self.timestamp


    def __eq__(self, other):
        return isinstance(other, TripletRecord) and self.encode() == other.encode()


    def __repr__(self):
        return "<TripletRecord %s>" % self.encode()



class Verdict(object):
    """Result of greylisting one triplet."""

    def __init__(self, action, state, message = None, record = None):
        self.action = action
        self.state = state
        self.message = message
        self.record = record


    def allowed(self):
        return self.action == ALLOW


    def __repr__(self):
        return "<Verdict %s (%s)>" % (self.action, self.state)



class Greylist(object):
    """Greylist implementation. Mail thats triplet was not seen before
    is deferred (temporary failure). It relay on fact that spammer
    software will not try to send mail once again and correctly
    configured mailservers must try it one again (see RFC 2821).

    Triplet states:
        new ..... first time seen, record is created and mail deferred
        black ... retry during black_timeout, mail deferred
        grey .... black_timeout elapsed, mail allowed, record unchanged
        white ... white counter > 0 and younger than white_timeout,
                  mail allowed and timestamp renewed

    Nothing in this class moves triplet from grey to white state, white
    counter is maintained only for records that already have it set.
    Expired records are removed by PruneTask.
    """

    def __init__(self, store):
        self.store = store


    def check(self, key, config, now = None):
        """Lock the store, evaluate triplet and unlock."""
        if not self.store.lock():
            raise StoreLockError("can't lock greylisting store in %ss" % config.getParam('lock_timeout'))
        try:
            return self.evaluate(key, config, now)
        finally:
            self.store.unlock()


    def evaluate(self, key, config, now = None):
        """Read-modify-write triplet record. Caller must hold store lock."""
        if now == None:
            now = int(time.time())
        blackTimeout = config.getParam('black_timeout')
        whiteTimeout = config.getParam('white_timeout')

        value = self.store.get(key)
        record = TripletRecord.decode(value)
        if value != None and record == None:
            logger.warning("invalid record \"%s\" for %s, recreating" % (value, key))

        if record == None:
            record = TripletRecord(now, 1, 0, 0)
            self.store.set(key, record.encode())
            logger.info("key %s initial DENYSOFT, unknown" % key)
            return self.__defer(NEW, record, config)

        logger.debug("key %s record %s, age %ss" % (key, record.encode(), record.age(now)))

        if record.white > 0:
            if record.age(now) < whiteTimeout:
                record.white += 1
                record.timestamp = now
                self.store.set(key, record.encode())
                logger.info("key %s is white, %i deliveries" % (key, record.white))
                return Verdict(ALLOW, WHITE, None, record)
            logger.info("key %s has timed out (white)" % key)

        if record.age(now) < blackTimeout:
            record.black += 1
            self.store.set(key, record.encode())
            logger.info("key %s black DENYSOFT - %i deferred connections" % (key, record.black))
            return self.__defer(BLACK, record, config)

        logger.info("key %s passed black timeout (grey)" % key)
        return Verdict(ALLOW, GREY, None, record)


    def __defer(self, state, record, config):
        if not config.rejects():
            logger.info("greylisting in test mode, %s triplet allowed" % state)
            return Verdict(ALLOW, state, None, record)
        return Verdict(DEFER, state, config.getParam('message'), record)
