#!/usr/bin/python3
# -*- coding: utf-8 -*-
#
# Test helpers
#
# Copyright (c) 2005 JAS
#
# Author: Petr Vokac <vokac@kmlinux.fjfi.cvut.cz>
#
# $Id$
#
from zope.interface import implementer
from ppgreylist.Base import StoreError
from ppgreylist.tools.store import IGreylistStore


@implementer(IGreylistStore)
class MemoryStore(object):
    """Store in dictionary. lockable=False simulates lock timeout,
    failing=True simulates broken backend."""

    def __init__(self, data = None, lockable = True, failing = False):
        self.data = dict(data or {})
        self.lockable = lockable
        self.failing = failing
        self.locked = False
        self.closed = False
        self.lockCount = 0

    def __check(self):
        if self.failing:
            raise StoreError("store is down")

    def lock(self):
        self.__check()
        if not self.lockable:
            return False
        self.locked = True
        self.lockCount += 1
        return True

    def unlock(self):
        self.locked = False

    def get(self, key):
        self.__check()
        return self.data.get(key)

    def set(self, key, value):
        self.__check()
        self.data[key] = value

    def delete(self, *keys):
        self.__check()
        count = 0
        for key in keys:
            if key in self.data:
                del self.data[key]
                count += 1
        return count

    def size(self):
        self.__check()
        return len(self.data)

    def keys(self):
        self.__check()
        return list(self.data.keys())

    def multiGet(self, keys):
        self.__check()
        return [ self.data.get(key) for key in keys ]

    def close(self):
        self.closed = True
