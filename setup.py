"""Greylisting engine for Python mail servers and policy daemons

Greylisting defers mail from clients (or client/sender/recipient
triplets) that were not seen before with temporary failure. Correctly
configured mailservers retry delivery later (see RFC 2821) and get
through, most spam software never comes back. Triplets are kept in
dbm file or in SQL database shared by more mailservers, connections can
be excluded from greylisting by static lists, OS fingerprint (p0f) and
country (GeoIP).
"""

from setuptools import setup

doclines = __doc__.split("\n")

setup(
    name            = "ppgreylist",
    version         = '2.1.0',
    author          = "Petr Vokac",
    author_email    = "vokac@kmlinux.fjfi.cvut.cz",
    url             = "http://kmlinux.fjfi.cvut.cz/~vokac/activities/ppolicy",
    license         = "GPL",
    platforms       = [ "any" ],
    packages        = [ "ppgreylist", "ppgreylist.tools", "ppgreylist.test" ],
    python_requires = ">=3.7",
    install_requires = [ "Twisted", "zope.interface", "netaddr" ],
    extras_require  = { "mysql": [ "mysqlclient" ],
                        "test": [ "pytest" ] },
    entry_points    = { "console_scripts": [ "ppgreylist = ppgreylist.cli:main" ] },
    description = doclines[0],
    long_description = "\n".join(doclines[2:]),
    )
