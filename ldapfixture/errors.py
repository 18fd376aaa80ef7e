"""Errors raised by ldapfixture."""


class LDAPFixtureError(Exception):
    """LDAP fixture error"""

    def __str__(self):
        s = self.__doc__
        if self.args:
            s = ': '.join([s] + [str(x) for x in self.args])
        return s + '.'


class ConfigurationError(LDAPFixtureError):
    """Invalid LDAP server configuration"""


class InitializationError(ConfigurationError):
    """Cannot create the LDAP server"""


class ResourceNotFoundError(LDAPFixtureError, IOError):
    """Cannot locate resource"""


class LDIFImportError(LDAPFixtureError):
    """Cannot import LDIF file"""

    def __init__(self, path, reason):
        LDAPFixtureError.__init__(self, path, reason)
        self.path = path
        self.reason = reason
