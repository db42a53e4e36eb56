#!/usr/bin/python3
# -*- coding: utf-8 -*-
#
# Greylisting store in SQL database
#
# Copyright (c) 2005 JAS
#
# Author: Petr Vokac <vokac@kmlinux.fjfi.cvut.cz>
#
# $Id$
#
import logging
import threading
from twisted.enterprise import adbapi
from zope.interface import implementer
from ppgreylist.Base import ParamError, StoreError
from ppgreylist.tools.store import IGreylistStore


__version__ = "$Revision$"

logger = logging.getLogger("ppgreylist")


@implementer(IGreylistStore)
class SqlStore(object):
    """Store records in database table shared by all mailservers. It
    uses connection from twisted adbapi connection pool that belongs to
    the current thread.

    Exclusive lock is database named lock (GET_LOCK) for MySQL drivers
    and write transaction (BEGIN IMMEDIATE) for sqlite3. Both wait at
    most lockTimeout seconds. Other DB API modules are refused, because
    without the lock mailservers sharing the table would overwrite
    each other's records.

    Parameters:
      dbapiName - DB API 2.0 module name (default: MySQLdb)
      table - database table (default: greylist)
      lockTimeout - maximum time to wait for lock (default: 5s)
      params - keyword arguments for dbapi connect
    """

    MYSQL_DRIVERS = ( 'MySQLdb', 'pymysql' )
    DB_ENGINE = "ENGINE=InnoDB"
    CHUNK = 500

    def __init__(self, dbapiName = 'MySQLdb', table = 'greylist', lockTimeout = 5, lockName = 'ppgreylist', **params):
        self.dbapiName = dbapiName
        self.table = table
        self.lockTimeout = lockTimeout
        self.lockName = lockName
        self.mutex = threading.Lock()
        self.locked = False
        self.sqlite = dbapiName == 'sqlite3'
        self.mysql = dbapiName in self.MYSQL_DRIVERS
        if not (self.sqlite or self.mysql):
            raise ParamError("unsupported db_api \"%s\" (supported: sqlite3, %s)" % (dbapiName, ", ".join(self.MYSQL_DRIVERS)))
        if self.sqlite:
            params.setdefault('timeout', lockTimeout)
            params.setdefault('check_same_thread', False)
        try:
            self.pool = adbapi.ConnectionPool(dbapiName, cp_noisy = False, **params)
        except ImportError as e:
            raise ParamError("can't load db_api module \"%s\": %s" % (dbapiName, e))
        if getattr(self.pool.dbapi, 'paramstyle', 'format') == 'qmark':
            self.mark = '?'
        else:
            self.mark = '%s'
        try:
            self.__createTable()
        except StoreError:
            self.pool.close()
            raise


    def __marks(self, count):
        return ", ".join([ self.mark ] * count)


    def __execute(self, sql, args = (), fetch = False):
        cursor = None
        try:
            conn = self.pool.connect()
            cursor = conn.cursor()
            if logger.getEffectiveLevel() <= logging.DEBUG:
                logger.debug("SQL: %s %s" % (sql, str(args)))
            cursor.execute(sql, args)
            if fetch:
                retVal = cursor.fetchall()
            else:
                retVal = cursor.rowcount
            if not self.locked:
                conn.commit()
            return retVal
        except self.pool.dbapi.Error as e:
            raise StoreError("%s: database error %s" % (self.table, e))
        finally:
            if cursor != None:
                cursor.close()


    def __createTable(self):
        sql = "CREATE TABLE IF NOT EXISTS `%s` (`triplet` VARCHAR(255) NOT NULL, `record` VARCHAR(64) NOT NULL, PRIMARY KEY (`triplet`))" % self.table
        if self.mysql:
            sql = "%s %s" % (sql, SqlStore.DB_ENGINE)
        self.__execute(sql)


    def lock(self):
        if not self.mutex.acquire(timeout = self.lockTimeout):
            logger.error("timeout waiting for %s lock (in process)" % self.table)
            return False

        try:
            conn = self.pool.connect()
            cursor = conn.cursor()
            try:
                if self.sqlite:
                    cursor.execute("BEGIN IMMEDIATE")
                    ok = True
                else:
                    cursor.execute("SELECT GET_LOCK(%s, %s)" % (self.mark, self.mark), (self.lockName, self.lockTimeout))
                    row = cursor.fetchone()
                    ok = row != None and row[0] == 1
            finally:
                cursor.close()
        except self.pool.dbapi.OperationalError as e:
            logger.error("can't lock %s: %s" % (self.table, e))
            ok = False
        except self.pool.dbapi.Error as e:
            self.mutex.release()
            raise StoreError("%s: database error %s" % (self.table, e))

        if not ok:
            self.mutex.release()
            return False

        self.locked = True
        return True


    def unlock(self):
        if not self.locked:
            return
        try:
            conn = self.pool.connect()
            if self.mysql:
                cursor = conn.cursor()
                try:
                    cursor.execute("SELECT RELEASE_LOCK(%s)" % self.mark, (self.lockName, ))
                finally:
                    cursor.close()
            conn.commit()
        except self.pool.dbapi.Error as e:
            logger.error("releasing %s lock failed: %s" % (self.table, e))
        finally:
            self.locked = False
            self.mutex.release()


    def get(self, key):
        rows = self.__execute("SELECT `record` FROM `%s` WHERE `triplet` = %s" % (self.table, self.mark), (key, ), True)
        if len(rows) == 0:
            return None
        return rows[0][0]


    def set(self, key, value):
        self.__execute("REPLACE INTO `%s` (`triplet`, `record`) VALUES (%s, %s)" % (self.table, self.mark, self.mark), (key, value))


    def delete(self, *keys):
        count = 0
        keys = list(keys)
        for i in range(0, len(keys), SqlStore.CHUNK):
            chunk = keys[i:i+SqlStore.CHUNK]
            count += self.__execute("DELETE FROM `%s` WHERE `triplet` IN (%s)" % (self.table, self.__marks(len(chunk))), tuple(chunk))
        return count


    def size(self):
        rows = self.__execute("SELECT COUNT(*) FROM `%s`" % self.table, (), True)
        return int(rows[0][0])


    def keys(self):
        rows = self.__execute("SELECT `triplet` FROM `%s`" % self.table, (), True)
        return [ row[0] for row in rows ]


    def multiGet(self, keys):
        found = {}
        keys = list(keys)
        for i in range(0, len(keys), SqlStore.CHUNK):
            chunk = keys[i:i+SqlStore.CHUNK]
            sql = "SELECT `triplet`, `record` FROM `%s` WHERE `triplet` IN (%s)" % (self.table, self.__marks(len(chunk)))
            for triplet, record in self.__execute(sql, tuple(chunk), True):
                found[triplet] = record
        return [ found.get(key) for key in keys ]


    def close(self):
        self.unlock()
        self.pool.close()
