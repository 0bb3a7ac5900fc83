import re
from functools import total_ordering

from ldapbranch._encoder import to_unicode

# See rfc4514
# Note that RFC 2253 sections 2.4 and 3 disagree whether "=" needs to
# be quoted. Let's trust the syntax, slapd refuses to accept unescaped
# "=" in RDN values.
escapedChars = ',+"\\<>;='
escapedChars_leading = ' #'
escapedChars_trailing = ' #'

_attributeType = re.compile(
    r'^(?:[A-Za-z][A-Za-z0-9-]*(?:;[A-Za-z0-9-]+)*|[0-9]+(?:\.[0-9]+)*)$')


def escape(s):
    r = ''
    r_trailer = ''

    if s and s[0] in escapedChars_leading:
        r = '\\' + s[0]
        s = s[1:]

    if s and s[-1] in escapedChars_trailing:
        r_trailer = '\\' + s[-1]
        s = s[:-1]

    for c in s:
        if c in escapedChars:
            r = r + '\\' + c
        elif ord(c) <= 31:
            r = r + '\\%02X' % ord(c)
        else:
            r = r + c

    return r + r_trailer


def unescape(s):
    r = ''

    while s:
        if s[0] == '\\':
            if len(s) < 2:
                raise InvalidRelativeDistinguishedName(s)
            if (len(s) >= 3
                    and s[1] in '0123456789abcdefABCDEF'
                    and s[2] in '0123456789abcdefABCDEF'):
                r = r + chr(int(s[1:3], 16))
                s = s[3:]
            else:
                r = r + s[1]
                s = s[2:]
        else:
            r = r + s[0]
            s = s[1:]

    return r


def _splitOnNotEscaped(s, separator):
    if not s:
        return []

    r = ['']
    while s:
        first = s[0:1]

        if first == '\\':
            r[-1] = r[-1] + s[:2]
            s = s[2:]
        elif first == separator:
            r.append('')
            s = s[1:]
            while s[0:1] == ' ':
                s = s[1:]
        else:
            r[-1] = r[-1] + first
            s = s[1:]

    return r


def _stripUnescaped(s):
    """Drop trailing spaces unless the last one is escaped."""
    while s.endswith(' ') and not s.endswith('\\ '):
        s = s[:-1]
    return s


class InvalidRelativeDistinguishedName(ValueError):
    """
    Invalid relative distinguished name.
    """

    def __init__(self, rdn):
        ValueError.__init__(self)
        self.rdn = rdn

    def __str__(self):
        return "Invalid relative distinguished name %s." \
               % repr(self.rdn)


class InvalidDistinguishedName(ValueError):
    """
    Invalid distinguished name.
    """

    def __init__(self, dn):
        ValueError.__init__(self)
        self.dn = dn

    def __str__(self):
        return "Invalid distinguished name %s." % repr(self.dn)


@total_ordering
class LDAPAttributeTypeAndValue:
    attributeType = None
    value = None

    def __init__(self, stringValue=None, attributeType=None, value=None):
        if stringValue is None:
            assert attributeType is not None
            assert value is not None
            self.attributeType = to_unicode(attributeType)
            self.value = to_unicode(value)
        else:
            assert attributeType is None
            assert value is None

            stringValue = to_unicode(stringValue)

            if '=' not in stringValue:
                raise InvalidRelativeDistinguishedName(stringValue)
            attributeType, value = stringValue.split('=', 1)
            self.attributeType = attributeType.strip()
            self.value = unescape(_stripUnescaped(value))

        if not _attributeType.match(self.attributeType):
            raise InvalidRelativeDistinguishedName(
                stringValue if stringValue is not None
                else '%s=%s' % (self.attributeType, self.value))

    def getText(self):
        return '='.join((self.attributeType, escape(self.value)))

    __str__ = getText

    def _key(self):
        return (self.attributeType.lower(), self.value.lower())

    def __repr__(self):
        return (self.__class__.__name__
                + '(attributeType='
                + repr(self.attributeType)
                + ', value='
                + repr(self.value)
                + ')')

    def __hash__(self):
        return hash(self._key())

    def __eq__(self, other):
        if not isinstance(other, LDAPAttributeTypeAndValue):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other):
        if not isinstance(other, LDAPAttributeTypeAndValue):
            return NotImplemented
        return self._key() < other._key()


@total_ordering
class RelativeDistinguishedName:
    """LDAP Relative Distinguished Name."""

    attributeTypesAndValues = None

    def __init__(self, magic=None, stringValue=None, attributeTypesAndValues=None):
        if magic is not None:
            assert stringValue is None
            assert attributeTypesAndValues is None
            if isinstance(magic, RelativeDistinguishedName):
                attributeTypesAndValues = magic.split()
            elif isinstance(magic, (bytes, str)):
                stringValue = magic
            else:
                attributeTypesAndValues = magic

        if stringValue is None:
            assert attributeTypesAndValues is not None
            assert not isinstance(attributeTypesAndValues, (bytes, str))
            self.attributeTypesAndValues = tuple(attributeTypesAndValues)
        else:
            assert attributeTypesAndValues is None
            parts = _splitOnNotEscaped(to_unicode(stringValue), '+')
            self.attributeTypesAndValues = tuple(
                LDAPAttributeTypeAndValue(stringValue=x) for x in parts)

        if not self.attributeTypesAndValues:
            raise InvalidRelativeDistinguishedName(stringValue or '')

    def split(self):
        return self.attributeTypesAndValues

    def getText(self):
        return '+'.join([x.getText() for x in self.attributeTypesAndValues])

    __str__ = getText

    def _key(self):
        # multi-valued RDNs are unordered sets of pairs
        return tuple(sorted(x._key() for x in self.attributeTypesAndValues))

    def __repr__(self):
        return (self.__class__.__name__
                + '(attributeTypesAndValues='
                + repr(self.attributeTypesAndValues)
                + ')')

    def __hash__(self):
        return hash(self._key())

    def __eq__(self, other):
        if not isinstance(other, RelativeDistinguishedName):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other):
        if not isinstance(other, RelativeDistinguishedName):
            return NotImplemented
        return self._key() < other._key()

    def count(self):
        return len(self.attributeTypesAndValues)


@total_ordering
class DistinguishedName:
    """LDAP Distinguished Name."""
    listOfRDNs = None

    def __init__(self, magic=None, stringValue=None, listOfRDNs=None):
        assert (magic is not None
                or stringValue is not None
                or listOfRDNs is not None)
        if magic is not None:
            assert stringValue is None
            assert listOfRDNs is None
            if isinstance(magic, DistinguishedName):
                listOfRDNs = magic.split()
            elif isinstance(magic, (bytes, str)):
                stringValue = magic
            elif hasattr(magic, 'dn'):
                listOfRDNs = DistinguishedName(magic.dn).split()
            else:
                listOfRDNs = magic

        if stringValue is None:
            assert listOfRDNs is not None
            for x in listOfRDNs:
                assert isinstance(x, RelativeDistinguishedName)
            self.listOfRDNs = tuple(listOfRDNs)
        else:
            assert listOfRDNs is None
            text = to_unicode(stringValue).lstrip()
            try:
                self.listOfRDNs = tuple(
                    RelativeDistinguishedName(stringValue=x)
                    for x in _splitOnNotEscaped(text, ','))
            except InvalidRelativeDistinguishedName:
                raise InvalidDistinguishedName(text)

    def split(self):
        return self.listOfRDNs

    def up(self):
        return DistinguishedName(listOfRDNs=self.listOfRDNs[1:])

    def child(self, rdn):
        """Return the DN of C{rdn} directly below this one."""
        rdn = RelativeDistinguishedName(rdn)
        return DistinguishedName(listOfRDNs=(rdn,) + self.listOfRDNs)

    def getText(self):
        return ','.join([x.getText() for x in self.listOfRDNs])

    __str__ = getText

    def _key(self):
        return tuple(x._key() for x in self.listOfRDNs)

    def __repr__(self):
        return (self.__class__.__name__
                + '(listOfRDNs='
                + repr(self.listOfRDNs)
                + ')')

    def __len__(self):
        return len(self.listOfRDNs)

    def __bool__(self):
        return True

    def __hash__(self):
        return hash(self._key())

    def __eq__(self, other):
        if isinstance(other, (bytes, str)):
            try:
                other = DistinguishedName(other)
            except InvalidDistinguishedName:
                return False
        if not isinstance(other, DistinguishedName):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other):
        """
        Hierarchical ordering: RDNs are compared starting from the root,
        the first differing pair decides, and an ancestor sorts before
        all of its descendants.
        """
        if not isinstance(other, DistinguishedName):
            return NotImplemented
        return self.compare(other) < 0

    def compare(self, other):
        mine = self._key()[::-1]
        its = other._key()[::-1]
        for a, b in zip(mine, its):
            if a != b:
                return -1 if a < b else 1
        return (len(mine) > len(its)) - (len(mine) < len(its))

    def getDomainName(self):
        domainParts = []
        l = list(self.listOfRDNs)
        l.reverse()
        for rdn in l:
            if rdn.count() != 1:
                break
            attributeTypeAndValue = rdn.split()[0]
            if attributeTypeAndValue.attributeType.upper() != 'DC':
                break
            domainParts.insert(0, attributeTypeAndValue.value)
        if domainParts:
            return '.'.join(domainParts)
        else:
            return None

    def getUFN(self):
        """
        The RFC 1781 user-friendly name: attribute values only, RDNs
        separated by comma and space, multi-valued RDNs joined with
        C{ + }.
        """
        return ', '.join(' + '.join(ava.value for ava in rdn.split())
                         for rdn in self.listOfRDNs)

    def contains(self, other):
        """Does the tree rooted at DN contain or equal the other DN."""
        if not isinstance(other, DistinguishedName):
            other = DistinguishedName(other)
        mine = self._key()
        its = other._key()
        if len(mine) > len(its):
            return False
        return its[len(its) - len(mine):] == mine
