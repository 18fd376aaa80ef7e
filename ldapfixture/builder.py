from ldapfixture import config, errors, fixture, resource


class Builder(object):
    """
    Collect the configuration of an L{fixture.LDAPServerFixture}.

    Every method but L{build} returns the builder itself so calls can
    be chained.
    """

    def __init__(self, *baseDNs):
        """
        @param baseDNs: Base DNs of the naming contexts the server
        holds.

        @raise errors.ConfigurationError: The base DNs are missing,
        malformed or overlap.
        """
        self._config = config.InMemoryDirectoryServerConfig(*baseDNs)
        self._ldif = []
        self._built = False

    def _checkNotBuilt(self):
        if self._built:
            raise errors.ConfigurationError('Builder has already been used')

    def listen(self, port, interface=None):
        """
        Add a listener, named C{LISTENER-<n>} where n is the number of
        listeners added before it.

        @param port: TCP port, 0 for any free port.

        @param interface: Address to bind, the configured default if
        None.

        @raise errors.ConfigurationError: The port is invalid or already
        used by another listener.
        """
        self._checkNotBuilt()
        listeners = self._config.getListenerConfigs()
        listeners.append(config.InMemoryListenerConfig(
            'LISTENER-%d' % len(listeners), port, interface))
        self._config.setListenerConfigs(listeners)
        return self

    def file(self, path):
        """Add an LDIF file to import, by file-system path."""
        self._checkNotBuilt()
        self._ldif.append(path)
        return self

    def resource(self, path, package=None):
        """
        Add an LDIF file to import, by resource name.

        @see: L{resource.findResource}

        @raise errors.ResourceNotFoundError: The resource cannot be
        found.
        """
        return self.file(resource.findResource(path, package))

    def build(self):
        """
        @raise errors.InitializationError: The server cannot be created.
        """
        self._checkNotBuilt()
        r = fixture.LDAPServerFixture(self._config, self._ldif)
        self._built = True
        return r
