"""In-memory LDAP server fixture for Twisted trial test suites"""
__version__ = "0.1.0"

__title__ = "ldapfixture"
__description__ = "In-memory LDAP server fixture for Twisted trial test suites"

__license__ = "MIT"
__author__ = "The ldapfixture developers"
__copyright__ = "Copyright (c) 2016-2026 {}".format(__author__)
