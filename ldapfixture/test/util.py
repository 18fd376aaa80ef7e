import os

from twisted.internet import defer, endpoints, protocol, reactor

from ldaptor.protocols.ldap import ldapclient


def writeFile(path, content):
    with open(path, "wb") as f:
        f.write(content)


def writeLDIF(testCase, content, name="seed.ldif"):
    """
    Write `content` to a fresh directory of `testCase` and return the
    path of the file.
    """
    base_path = testCase.mktemp()
    os.mkdir(base_path)
    path = os.path.join(base_path, name)
    writeFile(path, content)
    return path


class TrackingLDAPClient(ldapclient.LDAPClient):
    """
    An LDAPClient which lets the test wait until its connection is
    gone.
    """

    def __init__(self):
        ldapclient.LDAPClient.__init__(self)
        self.lost = defer.Deferred()

    def connectionLost(self, reason=protocol.connectionDone):
        ldapclient.LDAPClient.connectionLost(self, reason)
        self.lost.callback(None)


def connect(port):
    """
    Connect a TrackingLDAPClient to the local server on `port`.
    """
    endpoint = endpoints.TCP4ClientEndpoint(reactor, "127.0.0.1", port)
    return endpoints.connectProtocol(endpoint, TrackingLDAPClient())


def disconnect(client):
    client.transport.loseConnection()
    return client.lost
