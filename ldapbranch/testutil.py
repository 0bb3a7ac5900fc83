"""Utilities for writing unit tests against Branches and Branchsets."""

from zope.interface import implementer

from ldapbranch import interfaces
from ldapbranch.distinguishedname import DistinguishedName
from ldapbranch.interfaces import DNNotPresentError

TEST_SCHEMA = {
    "objectClasses": [
        "( 2.5.6.0 NAME 'top' DESC 'top of the superclass chain' ABSTRACT "
        "MUST objectClass )",
        "( 2.5.6.6 NAME 'person' DESC 'RFC2256: a person' SUP top STRUCTURAL "
        "MUST ( sn $ cn ) MAY ( userPassword $ telephoneNumber $ seeAlso $ description ) )",
        "( 2.5.6.7 NAME 'organizationalPerson' SUP person STRUCTURAL "
        "MAY ( title $ ou $ l $ telephoneNumber ) )",
        "( 2.16.840.1.113730.3.2.2 NAME 'inetOrgPerson' SUP organizationalPerson "
        "STRUCTURAL MAY ( givenName $ displayName $ mail $ uid $ employeeNumber $ "
        "manager ) )",
        "( 2.5.6.5 NAME 'organizationalUnit' SUP top STRUCTURAL MUST ou "
        "MAY ( description $ l ) )",
        "( 0.9.2342.19200300.100.4.13 NAME 'domain' SUP top STRUCTURAL MUST dc "
        "MAY ( description $ l ) )",
        "( 2.5.6.14 NAME 'device' SUP top STRUCTURAL MUST cn "
        "MAY ( serialNumber $ l $ ou $ description ) )",
        "( 1.3.6.1.1.1.2.6 NAME 'ipHost' SUP top AUXILIARY MUST ( cn $ ipHostNumber ) "
        "MAY ( l $ description ) )",
        "( 1.3.6.1.1.1.2.11 NAME 'ieee802Device' SUP top AUXILIARY MAY macAddress )",
        "( 1.3.6.1.1.1.2.0 NAME 'posixAccount' SUP top AUXILIARY "
        "MUST ( cn $ uid $ uidNumber $ gidNumber $ homeDirectory ) "
        "MAY ( loginShell $ description ) )",
    ],
    "attributeTypes": [
        "( 2.5.4.0 NAME 'objectClass' EQUALITY objectIdentifierMatch "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.38 )",
        "( 2.5.4.41 NAME 'name' EQUALITY caseIgnoreMatch SUBSTR caseIgnoreSubstringsMatch "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.15{32768} )",
        "( 2.5.4.3 NAME ( 'cn' 'commonName' ) SUP name )",
        "( 2.5.4.4 NAME ( 'sn' 'surname' ) SUP name )",
        "( 2.5.4.42 NAME ( 'givenName' 'gn' ) SUP name )",
        "( 2.5.4.12 NAME 'title' SUP name )",
        "( 2.5.4.11 NAME ( 'ou' 'organizationalUnitName' ) SUP name )",
        "( 2.5.4.7 NAME ( 'l' 'localityName' ) SUP name )",
        "( 2.5.4.13 NAME 'description' EQUALITY caseIgnoreMatch "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.15{1024} )",
        "( 2.5.4.5 NAME 'serialNumber' EQUALITY caseIgnoreMatch "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.44{64} )",
        "( 2.5.4.20 NAME 'telephoneNumber' EQUALITY telephoneNumberMatch "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.50{32} )",
        "( 2.5.4.34 NAME 'seeAlso' SUP distinguishedName )",
        "( 2.5.4.49 NAME 'distinguishedName' EQUALITY distinguishedNameMatch "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.12 )",
        "( 2.5.4.35 NAME 'userPassword' EQUALITY octetStringMatch "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.40{128} )",
        "( 2.16.840.1.113730.3.1.241 NAME 'displayName' EQUALITY caseIgnoreMatch "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.15 SINGLE-VALUE )",
        "( 0.9.2342.19200300.100.1.3 NAME ( 'mail' 'rfc822Mailbox' ) "
        "EQUALITY caseIgnoreIA5Match SYNTAX 1.3.6.1.4.1.1466.115.121.1.26{256} )",
        "( 0.9.2342.19200300.100.1.1 NAME ( 'uid' 'userid' ) EQUALITY caseIgnoreMatch "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.15{256} )",
        "( 2.16.840.1.113730.3.1.3 NAME 'employeeNumber' EQUALITY caseIgnoreMatch "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.15 SINGLE-VALUE )",
        "( 0.9.2342.19200300.100.1.10 NAME 'manager' EQUALITY distinguishedNameMatch "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.12 )",
        "( 0.9.2342.19200300.100.1.25 NAME ( 'dc' 'domainComponent' ) "
        "EQUALITY caseIgnoreIA5Match SYNTAX 1.3.6.1.4.1.1466.115.121.1.26 SINGLE-VALUE )",
        "( 1.3.6.1.1.1.1.19 NAME 'ipHostNumber' EQUALITY caseIgnoreIA5Match "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.26{128} )",
        "( 1.3.6.1.1.1.1.22 NAME 'macAddress' EQUALITY caseIgnoreIA5Match "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.26{128} )",
        "( 1.3.6.1.1.1.1.0 NAME 'uidNumber' EQUALITY integerMatch "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.27 SINGLE-VALUE )",
        "( 1.3.6.1.1.1.1.1 NAME 'gidNumber' EQUALITY integerMatch "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.27 SINGLE-VALUE )",
        "( 1.3.6.1.1.1.1.3 NAME 'homeDirectory' EQUALITY caseExactIA5Match "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.26 SINGLE-VALUE )",
        "( 1.3.6.1.1.1.1.4 NAME 'loginShell' EQUALITY caseExactIA5Match "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.26 SINGLE-VALUE )",
        "( 2.5.18.1 NAME 'createTimestamp' EQUALITY generalizedTimeMatch "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.24 SINGLE-VALUE NO-USER-MODIFICATION "
        "USAGE directoryOperation )",
        "( 2.5.18.2 NAME 'modifyTimestamp' EQUALITY generalizedTimeMatch "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.24 SINGLE-VALUE NO-USER-MODIFICATION "
        "USAGE directoryOperation )",
        "( 1.3.6.1.4.1.4203.666.1.33 NAME 'entryDN' EQUALITY distinguishedNameMatch "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.12 SINGLE-VALUE NO-USER-MODIFICATION "
        "USAGE directoryOperation )",
        "( 2.5.18.9 NAME 'hasSubordinates' EQUALITY booleanMatch "
        "SYNTAX 1.3.6.1.4.1.1466.115.121.1.7 SINGLE-VALUE NO-USER-MODIFICATION "
        "USAGE directoryOperation )",
    ],
    "ldapSyntaxes": [
        "( 1.3.6.1.4.1.1466.115.121.1.7 DESC 'Boolean' )",
        "( 1.3.6.1.4.1.1466.115.121.1.12 DESC 'Distinguished Name' )",
        "( 1.3.6.1.4.1.1466.115.121.1.15 DESC 'Directory String' )",
        "( 1.3.6.1.4.1.1466.115.121.1.24 DESC 'Generalized Time' )",
        "( 1.3.6.1.4.1.1466.115.121.1.27 DESC 'Integer' )",
        "( 1.3.6.1.4.1.1466.115.121.1.40 DESC 'Octet String' )",
    ],
    "matchingRules": [
        "( 2.5.13.2 NAME 'caseIgnoreMatch' SYNTAX 1.3.6.1.4.1.1466.115.121.1.15 )",
        "( 2.5.13.14 NAME 'integerMatch' SYNTAX 1.3.6.1.4.1.1466.115.121.1.27 )",
    ],
    "matchingRuleUse": [
        "( 2.5.13.14 NAME 'integerMatch' APPLIES ( uidNumber $ gidNumber ) )",
    ],
}


@implementer(interfaces.IDirectory)
class DirectoryTestDriver:
    """
    A directory that records the calls made to it.

    Pass in lists of raw entries; each search pops the first one and
    returns it. An Exception instance instead of a list is raised by the
    search that pops it. Exceptions queued in C{writeErrors} are raised, one
    per call, by the writes (modify, create, delete, move, copy) after
    they are recorded. getEntry answers from C{entries}, a mapping of
    DN to raw attributes. The calls are stored in self.sent as tuples so
    you can assert they are what they are supposed to be.
    """

    def __init__(self, *responses, entries=None, schema=None, controls=(),
                 baseDN="dc=example,dc=com"):
        self.sent = []
        self.responses = list(responses)
        self.writeErrors = []
        self.entries = {}
        for dn, attributes in (entries or {}).items():
            self.entries[DistinguishedName(dn)] = attributes
        self._schema = TEST_SCHEMA if schema is None else schema
        self._controls = tuple(controls)
        self.baseDN = DistinguishedName(baseDN)
        self.schemaFetches = 0

    def _response(self):
        assert self.responses, "Ran out of responses"
        return self.responses.pop(0)

    def search(self, base, scope, filterText, params):
        self.sent.append(("search", base, scope, filterText, params))
        r = self._response()
        if isinstance(r, Exception):
            raise r
        return r

    def _entry(self, dn):
        try:
            attributes = self.entries[DistinguishedName(dn)]
        except KeyError:
            raise DNNotPresentError(dn)
        r = dict(attributes)
        r["dn"] = dn
        return r

    def getEntry(self, dn):
        self.sent.append(("getEntry", dn))
        return self._entry(dn)

    def getExtendedEntry(self, dn):
        self.sent.append(("getExtendedEntry", dn))
        return self._entry(dn)

    def _write(self, *call):
        self.sent.append(call)
        if self.writeErrors:
            raise self.writeErrors.pop(0)

    def modify(self, dn, changes):
        self._write("modify", dn, changes)

    def create(self, dn, attributes):
        self._write("create", dn, attributes)

    def delete(self, dn, attributes=None):
        self._write("delete", dn, attributes)

    def move(self, dn, newRDN, attributes):
        self._write("move", dn, newRDN, attributes)

    def copy(self, dn, newDN, attributes):
        self._write("copy", dn, newDN, attributes)

    def schema(self):
        self.schemaFetches += 1
        return self._schema

    def registeredControls(self):
        return self._controls

    def assertNothingSent(self):
        # just a bit more explicit
        self.assertSent()

    def assertSent(self, *shouldBeSent):
        shouldBeSent = list(shouldBeSent)
        msg = "%s expected to send %r but sent %r" % (
            self.__class__.__name__,
            shouldBeSent,
            self.sent)
        assert self.sent == shouldBeSent, msg
