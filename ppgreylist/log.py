#!/usr/bin/python3
# -*- coding: utf-8 -*-
#
# Standard Python logging handler for twisted log.msg()
#
# Copyright (c) 2005 JAS
#
# Author: Petr Vokac <vokac@kmlinux.fjfi.cvut.cz>
#
# $Id$
#
import logging
import sys
import twisted.python.log

FORMAT = "%(asctime)s [%(levelname)s](%(module)s:%(lineno)d) %(message)s"
DATEFMT = "%d %b %H:%M:%S"


class TwistedHandler(logging.Handler):
    """ A handler class which sends formatted logging records
    to twisted python logging facitility.
    """

    def __init__(self):
        logging.Handler.__init__(self)

    def emit(self, record):
        msg = self.format(record)
        twisted.python.log.msg(msg)


def toLevel(value):
    """Logging level from number or level name (debug, info, ...)."""
    if isinstance(value, int):
        return value
    value = str(value).strip()
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    if not isinstance(level, int):
        raise ValueError("unknown log level \"%s\"" % value)
    return level


def setupLogging(level = logging.INFO, twisted = False):
    """Send ppgreylist messages to twisted log or to stderr."""
    if twisted:
        handler = TwistedHandler()
        handler.setFormatter(logging.Formatter("[%(levelname)s](%(module)s:%(lineno)d) %(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(FORMAT, DATEFMT))
    logger = logging.getLogger("ppgreylist")
    logger.addHandler(handler)
    logger.setLevel(toLevel(level))
    return handler
