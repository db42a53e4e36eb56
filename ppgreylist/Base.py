#!/usr/bin/python3
# -*- coding: utf-8 -*-
#
# Base exceptions and parameter handling
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


class GreylistError(Exception):
    """Base exception class for greylisting modules."""
    def __init__(self, args = ""):
        Exception.__init__(self, args)


class ParamError(GreylistError):
    """Error when setting module parameters. Used when required parametr
    is not specified or its value can't be used."""
    def __init__(self, args = ""):
        GreylistError.__init__(self, args)


class KeyBuildError(GreylistError):
    """No triplet dimension is enabled, so there is nothing to build
    lookup key from."""
    def __init__(self, args = ""):
        GreylistError.__init__(self, args)


class StoreError(GreylistError):
    """Persistent store failed (I/O, database connection, ...)."""
    def __init__(self, args = ""):
        GreylistError.__init__(self, args)


class StoreLockError(StoreError):
    """Exclusive store lock was not acquired in time."""
    def __init__(self, args = ""):
        StoreError.__init__(self, args)



class Base(object):
    """Object with named options. Each class in the hierarchy can
    define PARAMS dictionary

        { 'name': ('help text', default value), ... }

    and subclass tables are merged over parent ones, so subclass can
    change default value of inherited option by using help text None.
    Unknown option is reported and ignored.
    """

    PARAMS = {}

    def __init__(self, name = None, **keywords):
        self.name = name or self.__class__.__name__
        self.paramsHelp = {}
        self.paramsValue = {}
        for clazz in reversed(self.__class__.mro()):
            for k, (help, default) in clazz.__dict__.get('PARAMS', {}).items():
                if help != None:
                    self.paramsHelp[k] = help
                self.paramsValue[k] = default
        self.setParams(**keywords)


    def getId(self):
        return "%s[%s]" % (self.__class__.__name__, self.name)


    def hasParam(self, key):
        return key in self.paramsHelp


    def setParams(self, **keywords):
        for k, v in keywords.items():
            self.setParam(k, v)


    def getParams(self):
        """Return { name: (help, value) } for all options."""
        return dict([ (k, (self.paramsHelp.get(k), v)) for k, v in self.paramsValue.items() ])


    def setParam(self, key, value):
        """Returns False for unknown option."""
        if key not in self.paramsHelp:
            logger.error("%s: unknown option \"%s\"" % (self.getId(), key))
            return False
        self.paramsValue[key] = value
        return True


    def getParam(self, key, default = None):
        """Option value, default is used also for option set to None."""
        if key not in self.paramsHelp:
            logger.error("%s: unknown option \"%s\" requested" % (self.getId(), key))
        retVal = self.paramsValue.get(key)
        if retVal == None:
            retVal = default
        return retVal
