import configparser
import os.path

from ldaptor.protocols.ldap import distinguishedname

from ldapfixture import errors


class InMemoryListenerConfig(object):
    """A named TCP listener of the in-memory server."""

    def __init__(self, name, port, interface=None):
        if not name:
            raise errors.ConfigurationError('Listener name must not be empty')
        if (isinstance(port, bool)
                or not isinstance(port, int)
                or not 0 <= port <= 65535):
            raise errors.ConfigurationError('Invalid port %r' % (port,))
        if interface is None:
            interface = defaultInterface()
        self.name = name
        self.port = port
        self.interface = interface

    def __repr__(self):
        return '%s(name=%r, port=%r, interface=%r)' % (
            self.__class__.__name__, self.name, self.port, self.interface)


class InMemoryDirectoryServerConfig(object):
    """
    Configuration of an in-memory directory server: the naming
    contexts it serves and the listeners it binds.
    """

    def __init__(self, *baseDNs):
        if not baseDNs:
            raise errors.ConfigurationError(
                'At least one base DN must be given')
        parsed = []
        for baseDN in baseDNs:
            dn = _parseBaseDN(baseDN)
            for other in parsed:
                if other.contains(dn) or dn.contains(other):
                    raise errors.ConfigurationError(
                        'Base DN %s conflicts with %s'
                        % (dn.getText(), other.getText()))
            parsed.append(dn)
        self.baseDNs = tuple(parsed)
        self._listeners = []

    def getBaseDNs(self):
        return self.baseDNs

    def getListenerConfigs(self):
        return list(self._listeners)

    def setListenerConfigs(self, listeners):
        names = set()
        ports = set()
        for listener in listeners:
            if listener.name in names:
                raise errors.ConfigurationError(
                    'Duplicate listener name %s' % listener.name)
            names.add(listener.name)
            if listener.port:
                if listener.port in ports:
                    raise errors.ConfigurationError(
                        'Port %d is already used by another listener'
                        % listener.port)
                ports.add(listener.port)
        self._listeners = list(listeners)

    def copy(self):
        r = self.__class__(*self.baseDNs)
        r.setListenerConfigs(self._listeners)
        return r


def _parseBaseDN(baseDN):
    if isinstance(baseDN, distinguishedname.DistinguishedName):
        dn = baseDN
    else:
        if not baseDN or not baseDN.strip():
            raise errors.ConfigurationError('Empty base DN')
        try:
            dn = distinguishedname.DistinguishedName(stringValue=baseDN)
        except (distinguishedname.InvalidRelativeDistinguishedName,
                ValueError) as e:
            raise errors.ConfigurationError(
                'Invalid base DN %r' % (baseDN,)) from e
    if not dn.split():
        raise errors.ConfigurationError('Empty base DN')
    return dn


DEFAULTS = {
    'server': {'interface': '',
               'debug': 'no',
               },
    }

CONFIG_FILES = [
    '/etc/ldapfixture/global.cfg',
    os.path.expanduser('~/.ldapfixture/global.cfg'),
    ]

__config = None


def loadConfig(configFiles=None,
               reload=False):
    """
    Load configuration file.
    """
    global __config
    if __config is None or reload:
        x = configparser.ConfigParser(interpolation=None)

        for section, options in DEFAULTS.items():
            x.add_section(section)
            for option, value in options.items():
                x.set(section, option, value)

        if configFiles is None:
            configFiles = CONFIG_FILES
        x.read(configFiles)
        __config = x
    return __config


def defaultInterface():
    """
    Read configuration file if necessary and return the address new
    listeners bind to when none is given.
    """
    cfg = loadConfig()
    return cfg.get('server', 'interface')


def protocolDebug():
    """
    Read configuration file if necessary and return whether to log
    every LDAP message the server sends and receives.
    """
    cfg = loadConfig()
    return cfg.getboolean('server', 'debug')
