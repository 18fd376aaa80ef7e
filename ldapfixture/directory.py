"""In-memory LDAP directory server assembled from ldaptor parts."""

from twisted.internet import defer, error, protocol
from twisted.python import components, log
from twisted.python.failure import Failure
from zope.interface import implementer

from ldaptor import entry, inmemory, interfaces
from ldaptor.protocols import pureldap
from ldaptor.protocols.ldap import distinguishedname, ldaperrors, \
    ldapserver, ldifprotocol

from ldapfixture import config, errors, ldif


def _unwrapFirstError(reason):
    reason.trap(defer.FirstError)
    return reason.value.subFailure


@implementer(interfaces.IConnectedLDAPEntry)
class NamingContexts(object):
    """
    Root of the directory information tree.

    Holds one L{inmemory.ReadOnlyInMemoryLDAPEntry} tree per naming
    context. A naming context has no tree until its base entry has been
    added; until then every lookup below it fails with
    L{ldaperrors.LDAPNoSuchObject}.
    """

    def __init__(self, baseDNs):
        self.dn = distinguishedname.DistinguishedName(listOfRDNs=())
        self.baseDNs = tuple(baseDNs)
        self._roots = [None] * len(self.baseDNs)

    def _index(self, dn):
        for i, base in enumerate(self.baseDNs):
            if base.contains(dn):
                return i
        raise ldaperrors.LDAPNoSuchObject(dn.getText())

    def _lookup(self, dn):
        if not isinstance(dn, distinguishedname.DistinguishedName):
            dn = distinguishedname.DistinguishedName(dn)
        root = self._roots[self._index(dn)]
        if root is None:
            raise ldaperrors.LDAPNoSuchObject(dn.getText())
        return root.lookup(dn)

    def lookup(self, dn):
        return defer.maybeDeferred(self._lookup, dn)

    def fetch(self, *attributes):
        return defer.succeed(self)

    def _addEntry(self, e):
        dn = e.dn
        i = self._index(dn)
        if dn == self.baseDNs[i]:
            if self._roots[i] is not None:
                raise ldaperrors.LDAPEntryAlreadyExists(dn.getText())
            root = inmemory.ReadOnlyInMemoryLDAPEntry(dn=dn, attributes=e)
            self._roots[i] = root
            return root

        def _add(parent, e):
            return parent.addChild(rdn=e.dn.split()[0], attributes=e)

        d = self.lookup(dn.up())
        d.addCallback(_add, e)
        return d

    def addEntry(self, e):
        """
        Store a copy of C{e}, an L{interfaces.ILDAPEntry}, under its
        parent.

        @return: A Deferred firing with the stored entry.
        """
        return defer.maybeDeferred(self._addEntry, e)

    def addEntries(self, entries):
        """
        Add C{entries} in order. If one of them cannot be added, the
        ones added so far are removed again and the failure is passed
        on.

        @return: A Deferred firing with the list of stored entries.
        """
        added = []
        d = defer.succeed(None)
        for e in entries:
            d.addCallback(lambda _, e: self.addEntry(e), e)
            d.addCallback(added.append)
        d.addCallback(lambda _: added)
        d.addErrback(self._rollback, added)
        return d

    def _rollback(self, reason, added):
        d = defer.succeed(None)
        for e in reversed(added):
            d.addCallback(lambda _, e: self._removeEntry(e), e)
        d.addCallback(lambda _: reason)
        return d

    def _removeEntry(self, e):
        for i, root in enumerate(self._roots):
            if root is e:
                self._roots[i] = None
                return None
        return e.delete()

    def subtree(self):
        """
        @return: A Deferred firing with a list of every stored entry.
        """
        result = []
        d = defer.succeed(None)
        for root in self._roots:
            if root is not None:
                d.addCallback(
                    lambda _, root: root.subtree(callback=result.append),
                    root)
        d.addCallback(lambda _: result)
        return d

    def snapshot(self):
        return list(self._roots)

    def restore(self, snapshot):
        self._roots = list(snapshot)

    def clear(self):
        self._roots = [None] * len(self.baseDNs)


class InMemoryLDAPServer(ldapserver.LDAPServer):
    """An LDAP server protocol tracked by its L{LDAPServerFactory}."""

    def connectionMade(self):
        ldapserver.LDAPServer.connectionMade(self)
        self.factory.clientConnected(self)

    def connectionLost(self, reason=protocol.connectionDone):
        ldapserver.LDAPServer.connectionLost(self, reason)
        self.factory.clientDisconnected(self)

    def getRootDSE(self, request, reply):
        root = interfaces.IConnectedLDAPEntry(self.factory)
        reply(pureldap.LDAPSearchResultEntry(
            objectName='',
            attributes=[('supportedLDAPVersion', ['3']),
                        ('namingContexts',
                         [dn.getText() for dn in root.baseDNs]),
                        ('supportedExtension', [
                            pureldap.LDAPPasswordModifyRequest.oid, ]), ], ))
        return pureldap.LDAPSearchResultDone(
            resultCode=ldaperrors.Success.resultCode)


class LDAPServerFactory(protocol.ServerFactory):
    protocol = InMemoryLDAPServer
    debug = False

    def __init__(self, root):
        self.root = root
        self.connections = {}

    def buildProtocol(self, addr):
        proto = self.protocol()
        proto.debug = self.debug
        proto.factory = self
        return proto

    def clientConnected(self, proto):
        self.connections[proto] = defer.Deferred()

    def clientDisconnected(self, proto):
        d = self.connections.pop(proto, None)
        if d is not None:
            d.callback(None)

    def disconnectAll(self):
        """
        Abort every open connection.

        @return: A Deferred firing once all of them are closed.
        """
        ds = []
        for proto, d in list(self.connections.items()):
            ds.append(d)
            proto.transport.abortConnection()
        return defer.gatherResults(ds)


components.registerAdapter(lambda x: x.root,
                           LDAPServerFactory,
                           interfaces.IConnectedLDAPEntry)


class InMemoryDirectoryServer(object):
    """
    An LDAP server keeping its entries in memory.

    Entries are imported from LDIF files or added directly; LDAP
    clients reach them through the listeners of the configuration once
    L{startListening} has been called.
    """

    def __init__(self, serverConfig, reactor=None):
        if not serverConfig.getListenerConfigs():
            raise errors.ConfigurationError('No listener configured')
        self._config = serverConfig.copy()
        self._reactor = reactor
        self._contexts = NamingContexts(self._config.getBaseDNs())
        self._factory = LDAPServerFactory(self._contexts)
        self._factory.debug = config.protocolDebug()
        self._ports = []

    def _getReactor(self):
        if self._reactor is None:
            from twisted.internet import reactor
            self._reactor = reactor
        return self._reactor

    def getConfig(self):
        return self._config.copy()

    def getBaseDNs(self):
        return self._config.getBaseDNs()

    def importFromLDIF(self, clear, path):
        """
        Import the entries of an LDIF file.

        The import is all or nothing: if any entry cannot be added, the
        server keeps the entries it had before.

        @param clear: Remove every existing entry first.

        @param path: Path of the LDIF file.

        @return: A Deferred firing with the number of imported entries,
        or failing with L{errors.LDIFImportError}.
        """
        return defer.maybeDeferred(self._importFromLDIF, clear, path)

    def _importFromLDIF(self, clear, path):
        try:
            entries = ldif.readLDIFFile(path)
        except (EnvironmentError,
                ValueError,
                ldifprotocol.LDIFParseError,
                distinguishedname.InvalidRelativeDistinguishedName) as e:
            raise errors.LDIFImportError(path, e) from e

        saved = self._contexts.snapshot()
        if clear:
            self._contexts.clear()

        def _imported(added):
            log.msg('Imported %d entries from %s' % (len(added), path))
            return len(added)

        def _failed(reason):
            self._contexts.restore(saved)
            raise errors.LDIFImportError(path, reason.value)

        d = self._contexts.addEntries(entries)
        d.addCallbacks(_imported, _failed)
        return d

    def addEntry(self, dn, attributes):
        """
        Add an entry below an existing parent, or the base entry of a
        naming context.

        @param attributes: A dictionary of attribute types to list of
        attribute values.

        @return: A Deferred firing with the stored entry.
        """
        return self._contexts.addEntry(
            entry.BaseLDAPEntry(dn=dn, attributes=attributes))

    def getEntry(self, dn):
        """
        @return: A Deferred firing with the entry at C{dn}, or with
        None if there is no such entry.
        """
        def _noEntry(fail):
            fail.trap(ldaperrors.LDAPNoSuchObject)
            return None

        d = self._contexts.lookup(dn)
        d.addErrback(_noEntry)
        return d

    def search(self, baseDN, filterText=None,
               scope=pureldap.LDAP_SCOPE_wholeSubtree):
        def _search(base):
            return base.search(filterText=filterText, scope=scope)

        d = self._contexts.lookup(baseDN)
        d.addCallback(_search)
        return d

    def countEntries(self):
        d = self._contexts.subtree()
        d.addCallback(len)
        return d

    def clear(self):
        """Remove every entry."""
        self._contexts.clear()

    def startListening(self):
        """
        Bind every configured listener. If one of them cannot be bound,
        those already bound are released again.

        @return: A Deferred firing once listening, or failing with
        L{error.CannotListenError}.
        """
        return defer.maybeDeferred(self._startListening)

    def _startListening(self):
        if self._ports:
            return None
        reactor = self._getReactor()
        for listener in self._config.getListenerConfigs():
            try:
                port = reactor.listenTCP(listener.port,
                                         self._factory,
                                         interface=listener.interface)
            except error.CannotListenError:
                reason = Failure()
                d = self._stopPorts()
                d.addCallback(lambda _: reason)
                return d
            self._ports.append((listener, port))
            log.msg('%s listening on port %d'
                    % (listener.name, port.getHost().port))
        return None

    def isListening(self):
        return bool(self._ports)

    def getListenPort(self, listenerName=None):
        """
        @param listenerName: Name of the listener, the first one if
        None.

        @return: The port the listener is bound to, or -1 when the
        server is not listening.
        """
        for listener, port in self._ports:
            if listenerName is None or listener.name == listenerName:
                return port.getHost().port
        return -1

    def _stopPorts(self):
        ports, self._ports = self._ports, []
        d = defer.gatherResults(
            [defer.maybeDeferred(port.stopListening) for _, port in ports],
            consumeErrors=True)
        d.addErrback(_unwrapFirstError)
        return d

    def shutDown(self, closeConnections):
        """
        Stop listening.

        @param closeConnections: Also abort every open client
        connection.

        @return: A Deferred firing once the listeners, and the
        connections if asked, are closed.
        """
        ds = [self._stopPorts()]
        if closeConnections:
            ds.append(self._factory.disconnectAll())
        d = defer.gatherResults(ds, consumeErrors=True)
        d.addErrback(_unwrapFirstError)
        d.addCallback(lambda _: None)
        return d
