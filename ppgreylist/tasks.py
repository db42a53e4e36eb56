#!/usr/bin/python3
# -*- coding: utf-8 -*-
#
# Tasks:
#   Prune
#   Upgrade
#
# Copyright (c) 2005 JAS
#
# Author: Petr Vokac <vokac@kmlinux.fjfi.cvut.cz>
#
# $Id$
#
import time
import logging
from ppgreylist.Base import StoreError
from ppgreylist.Greylist import TripletRecord
from ppgreylist.Triplet import KEY_SEPARATOR, canonicalAddress, isLegacyAddress


__version__ = "$Revision$"

logger = logging.getLogger("ppgreylist")


class GreylistTaskBase(object):
    """Maintenance task working on whole greylisting store. It holds
    store lock for the whole run, so it never overlaps with triplet
    evaluation. Store failure is logged and the run is abandoned,
    next run starts from scratch."""

    def __init__(self, store, interval = 0):
        self._id = self.__class__.__name__
        self._interval = interval
        self.store = store


    def getId(self):
        """get module identification."""
        return self._id


    def getInterval(self):
        """get interval for calling doTask (0 means run once)."""
        return self._interval


    def doTask(self, *args, **keywords):
        """Lock store and run task, returns task result or None if the
        task failed."""
        logger.debug("running task: %s" % self.getId())
        try:
            if not self.store.lock():
                logger.error("%s: can't lock store, task skipped" % self.getId())
                return None
            try:
                return self.run(*args, **keywords)
            finally:
                self.store.unlock()
        except StoreError as e:
            logger.error("%s: task failed: %s" % (self.getId(), e))
            return None


    def run(self, *args, **keywords):
        """Task body called with store lock held. It has to be
        redefined in child classes."""
        raise NotImplementedError("Don't call base class directly")



class PruneTask(GreylistTaskBase):
    """Remove triplets older than white_timeout (and records that
    can't be decoded at all)."""

    def __init__(self, store, whiteTimeout, interval = 0):
        GreylistTaskBase.__init__(self, store, interval)
        self.whiteTimeout = whiteTimeout


    def run(self, now = None):
        if now == None:
            now = int(time.time())

        keys = self.store.keys()
        values = self.store.multiGet(keys)

        expired = []
        for key, value in zip(keys, values):
            if value == None:
                continue
            record = TripletRecord.decode(value)
            if record == None:
                logger.debug("pruning invalid record %s: %s" % (key, value))
                expired.append(key)
            elif record.age(now) >= self.whiteTimeout:
                expired.append(key)

        removed = 0
        if len(expired) > 0:
            removed = self.store.delete(*expired)
        logger.info("pruned %i of %i greylisting records" % (removed, len(keys)))
        return removed



class UpgradeTask(GreylistTaskBase):
    """Convert keys with textual client address (e.g.
    "192.168.0.1:sender:recipient") to current format with integer
    address ("3232235521:sender:recipient"). Keys already converted
    and keys without client address are not touched, so it is safe
    to run it again."""

    def run(self):
        keys = self.store.keys()
        converted = 0
        for key in keys:
            address, sep, rest = key.partition(KEY_SEPARATOR)
            if not isLegacyAddress(address):
                continue
            newKey = "%s%s%s" % (canonicalAddress(address), sep, rest)
            value = self.store.get(key)
            if value == None:
                continue
            self.store.set(newKey, value)
            self.store.delete(key)
            logger.debug("converted key %s -> %s" % (key, newKey))
            converted += 1
        logger.info("converted %i of %i greylisting keys" % (converted, len(keys)))
        return converted
