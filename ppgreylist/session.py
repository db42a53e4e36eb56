#!/usr/bin/python3
# -*- coding: utf-8 -*-
#
# Connection and transaction data passed by mail server
#
# Copyright (c) 2005 JAS
#
# Author: Petr Vokac <vokac@kmlinux.fjfi.cvut.cz>
#
# $Id$
#


__version__ = "$Revision$"


class Notes(object):
    """Named annotations shared by all modules processing the same
    connection or transaction."""

    def __init__(self, **keywords):
        self.data = dict(keywords)


    def get(self, name, default = None):
        return self.data.get(name, default)


    def set(self, name, value):
        self.data[name] = value


    def delete(self, name):
        self.data.pop(name, None)


    def __contains__(self, name):
        return name in self.data


    def __repr__(self):
        return "<Notes %s>" % self.data



class Connection(object):
    """Client connection.

    remote_ip .... client IP address
    remote_host .. client hostname from reverse DNS (None if unknown)
    relay_client . client is allowed to relay (authenticated, trusted
                   network), such connection is never greylisted
    notes ........ connection annotations (whitelisthost, p0f,
                   geoip_country, ...)
    """

    def __init__(self, remote_ip, remote_host = None, relay_client = False, notes = None):
        self.remote_ip = remote_ip
        self.remote_host = remote_host
        self.relay_client = relay_client
        self.notes = notes if notes != None else Notes()


    def __repr__(self):
        return "<Connection %s[%s]>" % (self.remote_host or 'unknown', self.remote_ip)



class Transaction(object):
    """One mail transaction (MAIL FROM .. DATA).

    sender ....... envelope sender, empty string or "<>" for null sender
    recipients ... accepted envelope recipients
    notes ........ transaction annotations (greylist, whitelistrcpt,
                   whitelistsender, is_spam, ...)
    """

    def __init__(self, sender = None, recipients = None, notes = None):
        self.sender = sender
        self.recipients = list(recipients or [])
        self.notes = notes if notes != None else Notes()


    def isNullSender(self):
        return self.sender == None or self.sender.strip() in ('', '<>')


    def addRecipient(self, recipient):
        self.recipients.append(recipient)


    def __repr__(self):
        return "<Transaction from %s to %s>" % (self.sender, ", ".join(self.recipients))
