"""
Run tests against a live in-memory LDAP server.

A L{LDAPServerFixture} is usually created with L{builder.Builder} and
applied to trial test methods as a decorator::

    class PeopleTests(unittest.TestCase):
        ldap = Builder('dc=example,dc=com') \\
            .listen(0) \\
            .resource('people.ldif', package='myproject.test') \\
            .build()

        @ldap
        def test_bob(self):
            d = self.ldap.server.getEntry('cn=bob,dc=example,dc=com')
            d.addCallback(self.assertNotIdentical, None)
            return d

Around every decorated test the fixture imports the LDIF files, starts
listening, runs the test and finally stops the server and removes all
entries, whatever the outcome of the test.
"""

import functools

from twisted.internet import defer
from twisted.python import log
from twisted.python.failure import Failure

from ldapfixture import directory, errors


class LDAPServerFixture(object):
    """An in-memory LDAP server seeded and started around each test."""

    def __init__(self, serverConfig, ldif, reactor=None):
        """
        @param serverConfig: L{config.InMemoryDirectoryServerConfig} of
        the server.

        @param ldif: Paths of the LDIF files to import, in order.

        @raise errors.InitializationError: The server cannot be created.
        """
        try:
            self._server = directory.InMemoryDirectoryServer(
                serverConfig, reactor=reactor)
        except errors.ConfigurationError as e:
            raise errors.InitializationError(str(e)) from e
        self._ldif = tuple(ldif)

    @property
    def server(self):
        return self._server

    @property
    def port(self):
        return self._server.getListenPort()

    def _load(self):
        d = defer.succeed(None)
        clear = True
        for path in self._ldif:
            d.addCallback(self._importFile, clear, path)
            clear = False
        return d

    def _importFile(self, _, clear, path):
        log.msg('LDIF file %s loading ...' % path)
        d = self._server.importFromLDIF(clear, path)
        d.addCallback(lambda _: log.msg('LDIF file %s loaded' % path))
        return d

    def apply(self, base, description):
        """
        Wrap C{base} in the server lifecycle.

        @param base: Callable running the test. It may return a
        Deferred.

        @param description: Name of the test, for log messages.

        @return: A callable which seeds and starts the server, calls
        C{base}, and stops and clears the server again. It returns a
        Deferred firing with the result of C{base}.
        """
        def evaluate():
            log.msg('%s ldap server starting...' % description)
            d = self._load()
            d.addCallback(self._listenAndRun, base, description)
            return d
        return evaluate

    def _listenAndRun(self, _, base, description):
        def _started(_):
            log.msg('%s ldap server started on port %d'
                    % (description, self.port))
            return base()

        d = self._server.startListening()
        d.addCallback(_started)
        d.addBoth(self._tearDown, description)
        return d

    def _tearDown(self, result, description):
        log.msg('%s ldap server stopping...' % description)

        def _clear(outcome):
            self._server.clear()
            return outcome

        def _stopped(_):
            log.msg('%s ldap server stopped' % description)
            return result

        def _failed(reason):
            if isinstance(result, Failure):
                log.err(reason,
                        '%s ldap server failed to stop' % description)
                return result
            return reason

        d = self._server.shutDown(closeConnections=True)
        d.addBoth(_clear)
        d.addCallbacks(_stopped, _failed)
        return d

    def run(self, f, *args, **kwargs):
        """
        Call C{f} with the given arguments inside the server lifecycle.

        @return: A Deferred firing with the result of C{f}.
        """
        description = getattr(f, '__qualname__', repr(f))
        return self.apply(functools.partial(f, *args, **kwargs),
                          description)()

    def __call__(self, method):
        """Decorate a test method to run inside the server lifecycle."""
        @functools.wraps(method)
        def wrapper(testCase, *args, **kwargs):
            base = functools.partial(method, testCase, *args, **kwargs)
            return self.apply(base, testCase.id())()
        return wrapper
