#!/usr/bin/python3
# -*- coding: utf-8 -*-
#
# Greylisting plugin called by mail server in SMTP phases
#
# Copyright (c) 2005 JAS
#
# Author: Petr Vokac <vokac@kmlinux.fjfi.cvut.cz>
#
# $Id$
#
import logging
from twisted.internet import task
from ppgreylist.Base import KeyBuildError, StoreError
from ppgreylist.Config import ConfigResolver, toList
from ppgreylist.Country import CountryPolicy
from ppgreylist.Exclusion import ExclusionEngine
from ppgreylist.Greylist import Greylist, WHITE
from ppgreylist.List import ExclusionList
from ppgreylist.P0f import P0fPolicy
from ppgreylist.Triplet import TripletKeyBuilder
from ppgreylist.log import toLevel
from ppgreylist.tasks import PruneTask, UpgradeTask
from ppgreylist.tools.store import createStore


__version__ = "$Revision$"

logger = logging.getLogger("ppgreylist")

# hook results
DECLINED = 'DECLINED'
DENYSOFT = 'DENYSOFT'


class GreylistPlugin(object):
    """Greylisting bound to SMTP phases. Mail server calls hookMail
    after MAIL FROM, hookRcpt after each RCPT TO and hookData after
    DATA. Each hook returns tuple (code, message) where code is DECLINED
    (this plugin has no objection) or DENYSOFT (temporary failure with
    message).

    Triplet with sender or recipient dimension (or with per-recipient
    configuration) is checked in RCPT phase, otherwise in MAIL phase.
    With deny_late the deferral is only remembered in transaction note
    "greylist" and returned in DATA phase. Mail from null sender is
    never deferred in RCPT phase, so we don't break callback address
    verification.

    Infrastructure failures never stop mail: when store can't be used
    or key can't be built, hooks return DECLINED.

    Examples:
        # greylist client address, defer in DATA phase
        plugin = GreylistPlugin({ 'deny_late': 1 })
        # greylist full triplet in sql database
        plugin = GreylistPlugin({ 'sender': 1, 'recipient': 1,
                                  'store': 'sql', 'db_api': 'MySQLdb',
                                  'db_params': { 'host': 'localhost',
                                                 'db': 'ppolicy',
                                                 'user': 'ppolicy',
                                                 'passwd': 'secret' } })
    """

    def __init__(self, options = None, recipientLookup = None, store = None, exclusions = None, clock = None):
        self.resolver = ConfigResolver(options, recipientLookup)
        self.keyBuilder = TripletKeyBuilder()
        self.store = store
        self.exclusions = exclusions
        self.engine = None
        self.greylist = None
        self.pruner = None
        self.pruneLoop = None
        self.clock = clock


    def getId(self):
        return self.__class__.__name__


    def start(self):
        """Validate global configuration, open store and run startup
        maintenance (key upgrade, pruning)."""
        config = self.resolver.getGlobal()

        loglevel = config.getParam('loglevel')
        if loglevel != None:
            logger.setLevel(toLevel(loglevel))

        if config.getParam('p0f'):
            P0fPolicy.parse(config.getParam('p0f'))
        if config.getParam('geoip'):
            CountryPolicy.parse(config.getParam('geoip'))
        if len(config.dimensions()) == 0:
            logger.error("%s: no triplet dimension enabled, nothing will be greylisted" % self.getId())

        if self.store == None:
            self.store = createStore(config)
        if self.exclusions == None:
            self.exclusions = ExclusionList.load(toList(config.getParam('exclude_file')))
        self.engine = ExclusionEngine(self.exclusions)
        self.greylist = Greylist(self.store)

        if config.getParam('upgrade'):
            UpgradeTask(self.store).doTask()

        self.pruner = PruneTask(self.store, config.getParam('white_timeout'),
                                config.getParam('prune_interval'))
        self.pruner.doTask()
        if self.pruner.getInterval() > 0:
            self.pruneLoop = task.LoopingCall(self.pruner.doTask)
            if self.clock != None:
                self.pruneLoop.clock = self.clock
            self.pruneLoop.start(self.pruner.getInterval(), now = False)

        logger.info("%s started" % self.getId())


    def reload(self, exclusions = None):
        """Load exclusion lists again. Running checks keep the engine
        they started with."""
        if exclusions == None:
            exclusions = ExclusionList.load(toList(self.resolver.getGlobal().getParam('exclude_file')))
        self.exclusions = exclusions
        self.engine = ExclusionEngine(exclusions)
        logger.info("%s reloaded %i exclusions" % (self.getId(), len(exclusions)))


    def stop(self):
        if self.pruneLoop != None and self.pruneLoop.running:
            self.pruneLoop.stop()
        self.pruneLoop = None
        if self.store != None:
            self.store.close()
        logger.info("%s stopped" % self.getId())


    def hookMail(self, transaction, sender, connection):
        config = self.resolver.resolve()
        if config.getParam('recipient') or config.getParam('per_recipient'):
            return DECLINED, None

        if self.engine.isExcluded(connection, config, transaction):
            return DECLINED, None

        code, message = self.check(connection, transaction, sender, None, config)
        if code == DENYSOFT and config.getParam('deny_late'):
            logger.debug("deferral postponed to DATA phase")
            transaction.notes.set('greylist', message)
            return DECLINED, None
        return code, message


    def hookRcpt(self, transaction, recipient, connection):
        config = self.resolver.resolve(recipient)
        if not (config.getParam('recipient') or config.getParam('per_recipient')):
            return DECLINED, None

        excluded = self.engine.isExcluded(connection, config, transaction)
        if excluded or not config.rejects():
            transaction.notes.set('whitelistrcpt', (transaction.notes.get('whitelistrcpt') or 0) + 1)
        if excluded:
            return DECLINED, None

        code, message = self.check(connection, transaction, transaction.sender, recipient, config)
        if code == DENYSOFT:
            if config.getParam('deny_late') or transaction.isNullSender():
                logger.debug("deferral for %s postponed to DATA phase" % recipient)
                transaction.notes.set('greylist', message)
                return DECLINED, None
        return code, message


    def hookData(self, transaction, connection = None):
        message = transaction.notes.get('greylist')
        if not message:
            return DECLINED, None

        recipients = len(transaction.recipients)
        whitelisted = transaction.notes.get('whitelistrcpt') or 0
        if recipients > 0 and whitelisted >= recipients:
            logger.info("all %i recipients whitelisted, skipping greylisting" % recipients)
            transaction.notes.delete('greylist')
            return DECLINED, None

        logger.info("deferring DATA: %s" % message)
        return DENYSOFT, message


    def check(self, connection, transaction, sender, recipient, config):
        """Evaluate triplet in greylisting store and translate verdict
        to hook result."""
        try:
            key = self.keyBuilder.build(config, connection.remote_ip, sender, recipient)
        except KeyBuildError as e:
            logger.error("%s: can't build greylisting key: %s" % (self.getId(), e))
            return DECLINED, None

        try:
            verdict = self.greylist.check(key, config)
        except StoreError as e:
            logger.error("%s: greylisting store failed, mail allowed: %s" % (self.getId(), e))
            return DECLINED, None

        if not verdict.allowed():
            return DENYSOFT, verdict.message

        if verdict.state == WHITE and config.agree():
            if transaction.notes.get('is_spam') or connection.notes.get('is_spam'):
                logger.info("key %s is white but classified as spam" % key)
                return DENYSOFT, config.getParam('message')

        return DECLINED, None
