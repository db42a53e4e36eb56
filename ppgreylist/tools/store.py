#!/usr/bin/python3
# -*- coding: utf-8 -*-
#
# Greylisting store interface
#
# Copyright (c) 2005 JAS
#
# Author: Petr Vokac <vokac@kmlinux.fjfi.cvut.cz>
#
# $Id$
#
import os
import logging
from zope.interface import Interface
from ppgreylist.Base import ParamError


__version__ = "$Revision$"

logger = logging.getLogger("ppgreylist")


class IGreylistStore(Interface):
    """Keyed persistent storage for triplet records. Keys and values are
    strings. Read-modify-write sequences have to be enclosed by lock and
    unlock, lock is exclusive for all processes sharing the store."""

    def get(key):
        """Return value for key or None."""

    def set(key, value):
        """Store value for key."""

    def delete(*keys):
        """Remove keys and return number of removed records."""

    def lock():
        """Acquire exclusive lock, return False when it was not acquired
        in lock timeout."""

    def unlock():
        """Release exclusive lock."""

    def size():
        """Number of stored records."""

    def keys():
        """List of all keys."""

    def multiGet(keys):
        """Values for keys in same order, None for missing key."""

    def close():
        """Release all resources."""



def createStore(config):
    """Create store backend selected by "store" option."""
    backend = str(config.getParam('store', 'dbm')).lower()
    lockTimeout = config.getParam('lock_timeout', 5)

    if backend == 'dbm':
        from ppgreylist.tools.filestore import DbmStore
        path = os.path.join(config.getParam('db_dir'), config.getParam('db_file'))
        logger.info("using dbm store %s" % path)
        return DbmStore(path, config.getParam('nfslock'), lockTimeout)

    if backend == 'sql':
        from ppgreylist.tools.dbstore import SqlStore
        params = config.getParam('db_params', {})
        logger.info("using sql store %s (%s)" % (config.getParam('db_table'), config.getParam('db_api')))
        return SqlStore(config.getParam('db_api'), config.getParam('db_table'),
                        lockTimeout, **params)

    raise ParamError("unknown store backend \"%s\"" % backend)
