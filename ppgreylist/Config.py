#!/usr/bin/python3
# -*- coding: utf-8 -*-
#
# Greylisting options and their layering
#
# Copyright (c) 2005 JAS
#
# Author: Petr Vokac <vokac@kmlinux.fjfi.cvut.cz>
#
# $Id$
#
import logging
from ppgreylist.Base import Base, ParamError


__version__ = "$Revision$"

logger = logging.getLogger("ppgreylist")

AGREE = 'agree'

BOOL_TRUE = ('1', 'yes', 'true', 'on')
BOOL_FALSE = ('0', 'no', 'false', 'off', '')


def toBool(value):
    """Convert configuration value to boolean. Strings are accepted
    in usual forms (1/0, yes/no, true/false, on/off)."""
    if value == None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        if value.strip().lower() in BOOL_TRUE:
            return True
        if value.strip().lower() in BOOL_FALSE:
            return False
    raise ParamError("invalid boolean value \"%s\"" % value)


def toList(value):
    """Split comma separated value into list of stripped items."""
    if value == None:
        return []
    if isinstance(value, (list, tuple)):
        return [ str(x).strip() for x in value if str(x).strip() != '' ]
    return [ x.strip() for x in str(value).split(',') if x.strip() != '' ]


def toDict(value):
    """Convert "key=value,key=value" to dictionary, numeric values
    are converted to int (e.g. port=3306)."""
    if value == None:
        return {}
    if isinstance(value, dict):
        return dict(value)
    retVal = {}
    for item in toList(value):
        k, sep, v = item.partition('=')
        k, v = k.strip(), v.strip()
        if sep == '' or k == '':
            raise ParamError("invalid key=value item \"%s\" in \"%s\"" % (item, value))
        if v.isdigit():
            v = int(v)
        retVal[k] = v
    return retVal


def parseConfigLines(lines):
    """Parse "key value" lines into dictionary. Empty lines and
    comments starting with # are skipped, key without value means 1
    (enabled flag)."""
    retVal = {}
    for line in lines:
        line = line.split('#', 1)[0].strip()
        if line == '':
            continue
        parts = line.split(None, 1)
        if len(parts) == 1:
            retVal[parts[0]] = '1'
        else:
            retVal[parts[0]] = parts[1].strip()
    return retVal


def readConfigFile(fileName):
    """Read options from file in "key value" format."""
    with open(fileName, "r") as f:
        return parseConfigLines(f)



class EffectiveConfig(Base):
    """Flat set of greylisting options used for one evaluation.

    Values are coerced to the type of the option when they are set, so
    strings read from configuration files ("yes", "3600", ...) and Python
    values can be used interchangeably. Unknown options are reported and
    ignored.

    Module arguments (see output of getParams method):
    remote_ip, sender, recipient, black_timeout, white_timeout, reject,
    mode, deny_late, per_recipient, message, store, db_dir, db_file,
    nfslock, db_api, db_params, db_table, lock_timeout, p0f, geoip,
    exclude_file, upgrade, prune_interval, loglevel

    Examples:
        # greylist by sender address and recipient, not by client IP
        EffectiveConfig(remote_ip=False, sender=True, recipient=True)
        # only record triplets, never defer
        EffectiveConfig(reject=False)
    """

    PARAMS = { 'remote_ip': ('use client IP address in triplet key', True),
               'sender': ('use sender address in triplet key', False),
               'recipient': ('use recipient address in triplet key', False),
               'per_recipient': ('merge per-recipient configuration', False),
               'black_timeout': ('how long to defer mail we see its triplet first time', 50*60),
               'white_timeout': ('expiration of triplets in database', 36*24*60*60),
               'reject': ('defer greylisted mail (False just records triplets, "agree" requires spam classifier agreement)', True),
               'mode': ('obsolete, use reject (testonly and off disable deferring)', None),
               'deny_late': ('postpone deferral to the DATA phase', False),
               'message': ('deferral message', "This mail is temporarily denied"),
               'store': ('store backend (dbm or sql)', 'dbm'),
               'db_dir': ('directory with dbm store', '/var/lib/ppgreylist'),
               'db_file': ('dbm store file name in db_dir', 'denysoft_greylist.dbm'),
               'nfslock': ('use NFS safe locking for dbm store', False),
               'db_api': ('DB API 2.0 module for sql store', 'MySQLdb'),
               'db_params': ('connection parameters for sql store ("key=value,key=value")', None),
               'db_table': ('sql store table', 'greylist'),
               'lock_timeout': ('maximum time to wait for store lock', 5),
               'p0f': ('greylist only OS fingerprint matching "key,value[,key,value...]"', None),
               'geoip': ('comma separated country codes excluded from greylisting', None),
               'exclude_file': ('comma separated list of exclusion list files', None),
               'upgrade': ('convert legacy textual IP keys at start', False),
               'prune_interval': ('how often to remove expired triplets (0 only at start)', 0),
               'loglevel': ('log level for greylisting messages', None),
               }

    BOOLS = ( 'remote_ip', 'sender', 'recipient', 'per_recipient',
              'deny_late', 'nfslock', 'upgrade' )
    INTS = ( 'black_timeout', 'white_timeout', 'lock_timeout', 'prune_interval' )


    def __init__(self, **keywords):
        self.explicit = set()
        Base.__init__(self, 'config', **keywords)


    def setParam(self, key, value):
        if not self.hasParam(key):
            logger.warning("unrecognized option \"%s\" ignored" % key)
            return False
        value = self.__coerce(key, value)
        self.explicit.add(key)
        return Base.setParam(self, key, value)


    def isExplicit(self, key):
        """Was option set by configuration (not default value)."""
        return key in self.explicit


    def __coerce(self, key, value):
        if value == None:
            return value
        if key in self.BOOLS:
            return toBool(value)
        if key in self.INTS:
            try:
                return int(value)
            except (TypeError, ValueError):
                raise ParamError("option %s requires integer, got \"%s\"" % (key, value))
        if key == 'reject':
            if isinstance(value, str) and value.strip().lower() == AGREE:
                return AGREE
            return toBool(value)
        if key == 'db_params':
            return toDict(value)
        return value


    def copy(self):
        retVal = EffectiveConfig()
        retVal.paramsValue = dict(self.paramsValue)
        retVal.explicit = set(self.explicit)
        return retVal


    def rejects(self):
        """True if greylisted mail should be really deferred."""
        return self.getParam('reject') in (True, AGREE)


    def agree(self):
        return self.getParam('reject') == AGREE


    def dimensions(self):
        return [ x for x in ('remote_ip', 'sender', 'recipient') if self.getParam(x) ]



class ConfigResolver(object):
    """Build EffectiveConfig from layers: built-in defaults, global
    options, per-recipient options and options passed by caller. Later
    layer wins.

    Global options are validated once when the resolver is created,
    invalid values raise ParamError. Per-recipient options come from
    recipientLookup callable (recipient -> dict or "key value" lines)
    and are used only if per_recipient is enabled. Broken per-recipient
    option is logged and skipped, it can't stop mail processing.
    """

    def __init__(self, options = None, recipientLookup = None):
        self.options = dict(options or {})
        self.recipientLookup = recipientLookup
        self.globalConfig = EffectiveConfig()
        for k, v in self.options.items():
            self.globalConfig.setParam(k, v)
        self.__legacyMode(self.globalConfig)


    def getGlobal(self):
        return self.globalConfig


    def resolve(self, recipient = None, overrides = None):
        config = self.globalConfig.copy()

        if recipient != None and config.getParam('per_recipient') and self.recipientLookup != None:
            for k, v in self.__recipientOptions(recipient).items():
                try:
                    config.setParam(k, v)
                except ParamError as e:
                    logger.error("per-recipient option %s for %s ignored: %s" % (k, recipient, e))

        for k, v in (overrides or {}).items():
            config.setParam(k, v)

        self.__legacyMode(config)
        return config


    def __recipientOptions(self, recipient):
        try:
            options = self.recipientLookup(recipient)
        except Exception as e:
            logger.error("per-recipient configuration lookup for %s failed: %s" % (recipient, e))
            return {}
        if options == None:
            return {}
        if isinstance(options, dict):
            return options
        return parseConfigLines(options)


    def __legacyMode(self, config):
        mode = config.getParam('mode')
        if mode == None or config.isExplicit('reject'):
            return
        reject = str(mode).strip().lower() not in ('testonly', 'off')
        logger.debug("legacy mode \"%s\" translated to reject %s" % (mode, reject))
        Base.setParam(config, 'reject', reject)
