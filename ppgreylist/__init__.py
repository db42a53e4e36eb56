"""Greylisting for Python mail servers and policy daemons.

Mail from unknown client (or sender/recipient triplet) is deferred with
temporary failure; well behaving mailservers retry later and get through,
most spam software never comes back.
"""

__version__ = '2.1.0'
