#!/usr/bin/python3
# -*- coding: utf-8 -*-
#
# Greylisting store in dbm file
#
# Copyright (c) 2005 JAS
#
# Author: Petr Vokac <vokac@kmlinux.fjfi.cvut.cz>
#
# $Id$
#
import dbm
import errno
import fcntl
import logging
import os
import threading
import time
from contextlib import contextmanager
from zope.interface import implementer
from ppgreylist.Base import StoreError
from ppgreylist.tools.store import IGreylistStore


__version__ = "$Revision$"

logger = logging.getLogger("ppgreylist")


@implementer(IGreylistStore)
class DbmStore(object):
    """Store records in dbm file. Database is opened only while the
    lock is held, so every lock/unlock pair see data written by other
    processes. Lock is advisory lock on separate file path + ".lock"
    (flock, or POSIX lockf that works also on NFS).

    Parameters:
      path - dbm database file
      nfslock - use lockf instead of flock (default: False)
      lockTimeout - maximum time to wait for lock (default: 5s)
    """

    LOCK_POLL = 0.05

    def __init__(self, path, nfslock = False, lockTimeout = 5):
        self.path = path
        self.lockPath = "%s.lock" % path
        self.nfslock = nfslock
        self.lockTimeout = lockTimeout
        self.mutex = threading.Lock()
        self.lockFile = None
        self.db = None


    def __lockFile(self, f, flags):
        if self.nfslock:
            fcntl.lockf(f, flags)
        else:
            fcntl.flock(f, flags)


    def __open(self):
        dirName = os.path.dirname(self.path)
        if dirName != '' and not os.path.isdir(dirName):
            os.makedirs(dirName)
        return dbm.open(self.path, 'c')


    def lock(self):
        deadline = time.time() + self.lockTimeout
        if not self.mutex.acquire(timeout = self.lockTimeout):
            logger.error("timeout waiting for %s lock (in process)" % self.path)
            return False

        f = None
        try:
            dirName = os.path.dirname(self.lockPath)
            if dirName != '' and not os.path.isdir(dirName):
                os.makedirs(dirName)
            f = open(self.lockPath, "a+")
            while True:
                try:
                    self.__lockFile(f, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except (IOError, OSError) as e:
                    if e.errno not in (errno.EAGAIN, errno.EACCES):
                        raise
                if time.time() >= deadline:
                    logger.error("timeout waiting for %s lock" % self.lockPath)
                    f.close()
                    self.mutex.release()
                    return False
                time.sleep(self.LOCK_POLL)

            self.lockFile = f
            self.db = self.__open()
        except (dbm.error, IOError, OSError) as e:
            if self.lockFile != None:
                self.__lockFile(self.lockFile, fcntl.LOCK_UN)
            if f != None:
                f.close()
            self.lockFile = None
            self.db = None
            self.mutex.release()
            raise StoreError("can't lock and open %s: %s" % (self.path, e))

        return True


    def unlock(self):
        if self.lockFile == None:
            return
        try:
            if self.db != None:
                self.db.close()
        finally:
            self.db = None
            try:
                self.__lockFile(self.lockFile, fcntl.LOCK_UN)
                self.lockFile.close()
            finally:
                self.lockFile = None
                self.mutex.release()


    @contextmanager
    def __opened(self):
        """Use database opened by lock, or open it just for one
        operation (e.g. listing records from command line)."""
        if self.db != None:
            yield self.db
            return
        try:
            db = self.__open()
        except (dbm.error, IOError, OSError) as e:
            raise StoreError("can't open %s: %s" % (self.path, e))
        try:
            yield db
        finally:
            db.close()


    def get(self, key):
        with self.__opened() as db:
            try:
                value = db.get(key.encode('utf-8'))
            except dbm.error as e:
                raise StoreError("reading %s failed: %s" % (key, e))
        if value == None:
            return None
        return value.decode('ascii', 'replace')


    def set(self, key, value):
        with self.__opened() as db:
            try:
                db[key.encode('utf-8')] = value.encode('ascii')
            except dbm.error as e:
                raise StoreError("writing %s failed: %s" % (key, e))


    def delete(self, *keys):
        count = 0
        with self.__opened() as db:
            for key in keys:
                k = key.encode('utf-8')
                try:
                    if k in db:
                        del db[k]
                        count += 1
                except dbm.error as e:
                    raise StoreError("deleting %s failed: %s" % (key, e))
        return count


    def size(self):
        with self.__opened() as db:
            return len(db)


    def keys(self):
        with self.__opened() as db:
            try:
                return [ k.decode('utf-8', 'replace') for k in db.keys() ]
            except dbm.error as e:
                raise StoreError("listing %s failed: %s" % (self.path, e))


    def multiGet(self, keys):
        retVal = []
        with self.__opened() as db:
            for key in keys:
                try:
                    value = db.get(key.encode('utf-8'))
                except dbm.error as e:
                    raise StoreError("reading %s failed: %s" % (key, e))
                if value != None:
                    value = value.decode('ascii', 'replace')
                retVal.append(value)
        return retVal


    def close(self):
        self.unlock()
