"""Read LDIF content files into ldaptor entries."""

import sys

from twisted.internet import error, protocol
from twisted.python.failure import Failure

from ldaptor.protocols.ldap import ldifprotocol


class LDIFEntryCollector(ldifprotocol.LDIF):
    """Gather every entry of the LDIF data, in order."""

    # Base64 values such as photos or certificates make for long lines.
    MAX_LENGTH = sys.maxsize

    def __init__(self):
        self.entries = []

    def state_HEADER(self, line):
        # Blank lines may come before the version line or the first entry.
        if not line:
            return
        ldifprotocol.LDIF.state_HEADER(self, line)

    def gotEntry(self, entry):
        self.entries.append(entry)

    def connectionLost(self, reason=protocol.connectionDone):
        if self.mode == ldifprotocol.HEADER:
            # nothing but blank lines and comments
            return
        ldifprotocol.LDIF.connectionLost(self, reason)


def readLDIF(f):
    """
    Parse LDIF data from a binary file object.

    @return: list of L{ldaptor.entry.BaseLDAPEntry}, in file order.

    @raise ldifprotocol.LDIFParseError: the data is not valid LDIF.
    """
    data = f.read().replace(b'\r\n', b'\n')
    if not data.strip():
        return []
    # The parser only completes an entry when it sees the blank line
    # that follows it.
    if not data.endswith(b'\n'):
        data += b'\n'
    data += b'\n'

    p = LDIFEntryCollector()
    p.dataReceived(data)
    p.connectionLost(Failure(error.ConnectionDone()))
    return p.entries


def readLDIFFile(path):
    with open(path, 'rb') as f:
        return readLDIF(f)
