#!/usr/bin/python3
# -*- coding: utf-8 -*-
#
# Greylisting store maintenance
#
# Copyright (c) 2005 JAS
#
# Author: Petr Vokac <vokac@kmlinux.fjfi.cvut.cz>
#
# $Id$
#
import argparse
import logging
import sys
import time
from ppgreylist.Base import GreylistError
from ppgreylist.Config import ConfigResolver, readConfigFile
from ppgreylist.Greylist import TripletRecord
from ppgreylist.log import setupLogging
from ppgreylist.tasks import PruneTask, UpgradeTask
from ppgreylist.tools.store import createStore


__version__ = "$Revision$"

logger = logging.getLogger("ppgreylist")


def recordState(record, config, now):
    if record.white > 0 and record.age(now) < config.getParam('white_timeout'):
        return 'white'
    if record.age(now) < config.getParam('black_timeout'):
        return 'black'
    if record.age(now) >= config.getParam('white_timeout'):
        return 'expired'
    return 'grey'


def locked(command):
    """Run command with store lock held, so it never reads or writes
    the store in the middle of running triplet evaluation."""
    def wrapper(store, config, args):
        if not store.lock():
            logger.error("can't lock greylisting store, %s skipped" % args.command)
            return 1
        try:
            return command(store, config, args)
        finally:
            store.unlock()
    return wrapper


@locked
def show(store, config, args):
    now = int(time.time())
    keys = sorted(store.keys())
    if args.limit != None:
        keys = keys[:args.limit]
    print("{:50s} {:19s} {:>5s} {:>6s} {:>6s} {:8s}".format(
        "key", "timestamp", "new", "black", "white", "state"))
    for key, value in zip(keys, store.multiGet(keys)):
        record = TripletRecord.decode(value)
        if record == None:
            print("{:50s} invalid record {!r}".format(key, value))
            continue
        print("{:50s} {:19s} {:5d} {:6d} {:6d} {:8s}".format(
            key,
            time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(record.timestamp)),
            record.new, record.black, record.white,
            recordState(record, config, now)))
    return 0


def prune(store, config, args):
    removed = PruneTask(store, config.getParam('white_timeout')).doTask()
    if removed == None:
        return 1
    print("removed {} records".format(removed))
    return 0


def upgrade(store, config, args):
    converted = UpgradeTask(store).doTask()
    if converted == None:
        return 1
    print("converted {} keys".format(converted))
    return 0


@locked
def delete(store, config, args):
    print("deleted {} records".format(store.delete(*args.keys)))
    return 0


def main(argv = None):
    parser = argparse.ArgumentParser(
        description="""Inspect and maintain greylisting store. Store backend
        and timeouts are read from the same "key value" configuration file
        that is used by the greylisting plugin."""
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        metavar="FILE",
        help="Specify a config file to override defaults")
    parser.add_argument(
        "-v",
        dest="verbosity",
        action="count",
        default=0,
        help="Increase verbosity by one step")
    subcommands = parser.add_subparsers(
        title="Commands", dest="command")
    subcommands.required = True

    cmd_show = subcommands.add_parser("show", help="list stored triplets")
    cmd_show.set_defaults(func=show)
    cmd_show.add_argument(
        "-l", "--limit",
        type=int,
        help="Limit the amount of rows returned",
        metavar="COUNT")

    cmd_prune = subcommands.add_parser("prune", help="remove expired triplets")
    cmd_prune.set_defaults(func=prune)

    cmd_upgrade = subcommands.add_parser("upgrade", help="convert keys with textual client address")
    cmd_upgrade.set_defaults(func=upgrade)

    cmd_delete = subcommands.add_parser("delete", help="remove triplets")
    cmd_delete.set_defaults(func=delete)
    cmd_delete.add_argument("keys", nargs="+", metavar="KEY")

    args = parser.parse_args(argv)

    verbosity = {
        0: logging.ERROR,
        1: logging.WARN,
        2: logging.INFO,
        3: logging.DEBUG
    }
    setupLogging(verbosity.get(args.verbosity, logging.DEBUG))

    try:
        options = {}
        if args.config != None:
            options = readConfigFile(args.config)
        config = ConfigResolver(options).getGlobal()
        store = createStore(config)
    except (GreylistError, IOError, OSError) as e:
        logger.error("can't open greylisting store: %s" % e)
        return 1

    try:
        return args.func(store, config, args)
    except GreylistError as e:
        logger.error("%s failed: %s" % (args.command, e))
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
