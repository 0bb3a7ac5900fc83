"""
Branches: a DN in a directory, with lazily fetched and decoded
attributes.
"""

from collections.abc import Mapping
from functools import total_ordering

from twisted.python import log
from twisted.python.util import InsensitiveDict

from ldapbranch import config
from ldapbranch._encoder import as_list, to_text, to_unicode
from ldapbranch.branchset import Branchset
from ldapbranch.distinguishedname import (
    DistinguishedName,
    LDAPAttributeTypeAndValue,
    RelativeDistinguishedName,
)
from ldapbranch.interfaces import DNNotPresentError
from ldapbranch.schema import Schema


class UnknownAttributeError(ValueError):
    """The attribute type is not known to the directory schema."""

    def __init__(self, attributeType):
        ValueError.__init__(self)
        self.attributeType = attributeType

    def __str__(self):
        return "%s: %r" % (self.__doc__, self.attributeType)


def rawValue(value):
    """Convert a value to what is handed to the directory."""
    if isinstance(value, bytes):
        return value
    return to_text(value)


def rawValues(value):
    if value is None:
        return []
    return [rawValue(v) for v in as_list(value)]


def rawAttributes(attributes):
    """
    Normalize a mapping of attribute type to value(s) into an
    InsensitiveDict of attribute type to list of raw values. The C{dn}
    key is dropped.
    """
    r = InsensitiveDict()
    for k, v in (attributes or {}).items():
        k = to_unicode(k)
        if k.lower() == "dn":
            continue
        r[k] = rawValues(v)
    return r


def _uniqByOID(descriptions):
    seen = set()
    r = []
    for d in descriptions:
        if d.oid not in seen:
            seen.add(d.oid)
            r.append(d)
    return r


@total_ordering
class Branch:
    """
    An entry in a directory, named by its DN.

    Nothing is read from the directory until an attribute is asked for;
    the raw entry is then fetched once and decoded values are cached per
    attribute type.
    """

    def __init__(self, directory, dn, entry=None, includeOperational=None):
        self.directory = directory
        self.dn = DistinguishedName(dn)
        if includeOperational is None:
            includeOperational = config.LDAPConfig().getIncludeOperational()
        self.includeOperational = includeOperational
        self._entry = None
        if entry is not None:
            self._entry = rawAttributes(entry)
        self._values = {}

    @classmethod
    def fromEntry(cls, rawEntry, directory, **kw):
        """
        Build a Branch from a raw entry returned by a search; its DN is
        taken from the C{dn} key.
        """
        dn = rawEntry["dn"]
        if isinstance(dn, (list, tuple)):
            dn = dn[0]
        return cls(directory, dn, entry=rawEntry, **kw)

    def _branchOptions(self):
        """Keyword arguments needed to build a sibling of this Branch."""
        return {"includeOperational": self.includeOperational}

    def _spawn(self, dn, entry=None):
        return self.__class__(self.directory, dn, entry=entry, **self._branchOptions())

    @property
    def schema(self):
        return Schema.forDirectory(self.directory)

    def clearCaches(self):
        log.msg("Clearing caches of %s" % self.getDN(), debug=True)
        self._entry = None
        self._values = {}

    def entry(self):
        """
        Return the raw attributes of this entry, fetching them on first
        use.

        @raise DNNotPresentError: the entry does not exist.
        """
        if self._entry is None:
            dn = self.getDN()
            if self.includeOperational:
                raw = self.directory.getExtendedEntry(dn)
            else:
                raw = self.directory.getEntry(dn)
            if raw is None:
                raise DNNotPresentError(dn)
            self._entry = rawAttributes(raw)
        return self._entry

    def exists(self):
        try:
            return bool(self.entry())
        except DNNotPresentError:
            return False

    def getDN(self):
        return self.dn.getText()

    def toUFN(self):
        """The DN as an RFC 1781 user-friendly name."""
        return self.dn.getUFN()

    @property
    def rdn(self):
        rdns = self.dn.split()
        if not rdns:
            return None
        return rdns[0]

    def setRDN(self, rdn):
        """
        Point this Branch at C{rdn} under the same parent. The directory
        is not touched; use move() to rename the entry itself.
        """
        rdn = RelativeDistinguishedName(rdn)
        self.dn = DistinguishedName(listOfRDNs=(rdn,) + self.dn.split()[1:])
        self.clearCaches()

    def parentDN(self):
        if not self.dn.split():
            return None
        return self.dn.up()

    def splitDN(self, limit=0):
        """
        Split the DN into RDN strings. A positive C{limit} caps the number
        of parts; the last one then holds the unsplit remainder.
        """
        parts = [x.getText() for x in self.dn.split()]
        if limit > 0 and len(parts) > limit:
            parts = parts[:limit - 1] + [",".join(parts[limit - 1:])]
        return parts

    def parent(self):
        dn = self.parentDN()
        if dn is None:
            return None
        return self._spawn(dn)

    def children(self):
        return self.search("one")

    def _checkAttributeType(self, attributeType):
        if not self.schema.isAttributeName(attributeType):
            raise UnknownAttributeError(attributeType)

    def child(self, attributeType, value, additional=None):
        """
        Return the Branch at C{attributeType=value} below this one, with
        C{additional} pairs forming a multi-valued RDN. The directory is
        not touched.

        @raise UnknownAttributeError: an attribute type is not in the
        schema.
        """
        pairs = [(attributeType, value)]
        if additional is not None:
            if isinstance(additional, Mapping):
                additional = additional.items()
            pairs.extend(additional)

        avas = []
        for attr, val in pairs:
            attr = to_unicode(attr)
            self._checkAttributeType(attr)
            avas.append(LDAPAttributeTypeAndValue(attributeType=attr, value=to_text(val)))
        rdn = RelativeDistinguishedName(attributeTypesAndValues=avas)
        return self._spawn(self.dn.child(rdn))

    def __truediv__(self, rdn):
        rdn = RelativeDistinguishedName(rdn)
        for ava in rdn.split():
            self._checkAttributeType(ava.attributeType)
        return self._spawn(self.dn.child(rdn))

    def _rawValues(self, attributeType):
        """Raw values of the attribute, looked up under all its names."""
        entry = self.entry()
        raw = entry.get(attributeType, None)
        if raw is not None:
            return raw
        at = self.schema.attributeType(attributeType)
        if at is None:
            return None
        for name in at.names + (at.oid,):
            raw = entry.get(name, None)
            if raw is not None:
                return raw
        return None

    def __getitem__(self, attributeType):
        attributeType = to_unicode(attributeType)
        at = self.schema.attributeType(attributeType)
        if at is None:
            log.msg("Unknown attribute type %r requested from %s" % (attributeType, self.getDN()))
            return None
        if at.oid in self._values:
            return self._values[at.oid]

        raw = self._rawValues(attributeType)
        if raw is None:
            return None
        value = at.decode(raw)
        self._values[at.oid] = value
        return value

    def get(self, attributeType, default=None):
        value = self[attributeType]
        if value is None:
            return default
        return value

    def __setitem__(self, attributeType, value):
        attributeType = to_unicode(attributeType)
        values = rawValues(value)
        self.directory.modify(self.getDN(), {attributeType: values})

        at = self.schema.attributeType(attributeType)
        names = [attributeType]
        if at is not None:
            self._values.pop(at.oid, None)
            names.extend(at.names + (at.oid,))
        if self._entry is not None:
            # the entry may hold the values under another name of the type
            for name in names:
                if name in self._entry:
                    del self._entry[name]
            if values:
                self._entry[attributeType] = values

    def merge(self, attributes):
        """Replace the values of several attributes at once."""
        changes = {to_unicode(k): rawValues(v) for k, v in attributes.items()}
        self.directory.modify(self.getDN(), changes)
        self.clearCaches()
        return self

    def delete(self, *attributes):
        """
        Delete the given attributes from the entry, or, without arguments,
        the entry itself.
        """
        if attributes:
            self.directory.delete(self.getDN(), [to_unicode(x) for x in attributes])
        else:
            self.directory.delete(self.getDN())
        self.clearCaches()
        return self

    def create(self, attributes=None):
        """
        Add this entry to the directory. Without C{attributes}, the
        attributes this Branch was built with are written.
        """
        if attributes is None:
            attributes = self._entry or {}
        attributes = rawAttributes(attributes)
        self.directory.create(self.getDN(), dict(attributes.items()))
        self.clearCaches()
        return self

    def copy(self, newDN, attributes=None):
        newDN = DistinguishedName(newDN)
        attributes = rawAttributes(attributes)
        self.directory.copy(self.getDN(), newDN.getText(), dict(attributes.items()))
        return self._spawn(newDN)

    def move(self, newRDN, attributes=None):
        newRDN = RelativeDistinguishedName(newRDN)
        attributes = rawAttributes(attributes)
        self.directory.move(self.getDN(), newRDN.getText(), dict(attributes.items()))
        self.dn = DistinguishedName(listOfRDNs=(newRDN,) + self.dn.split()[1:])
        self.clearCaches()
        return self

    def _compare(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return self.dn.compare(other.dn)

    def compare(self, other):
        """
        Order by position in the tree: the first differing RDN counted
        from the root decides, and an ancestor sorts before its
        descendants.
        """
        r = self._compare(other)
        if r is NotImplemented:
            raise TypeError("Cannot compare %s with %r" % (self.__class__.__name__, other))
        return r

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return self.dn == other.dn

    def __lt__(self, other):
        r = self._compare(other)
        if r is NotImplemented:
            return r
        return r < 0

    def __hash__(self):
        return hash((self.__class__, self.dn))

    def objectClassNames(self):
        """Raw objectClass values, empty when the entry does not exist."""
        try:
            return self._rawValues("objectClass") or []
        except DNNotPresentError:
            return []

    def objectClasses(self, *extra):
        """Schema descriptions of the entry's objectClasses plus C{extra}."""
        r = []
        for name in list(self.objectClassNames()) + list(extra):
            oc = self.schema.objectClass(name)
            if oc is None:
                log.msg("Unknown objectClass %r on %s" % (name, self.getDN()))
                continue
            r.append(oc)
        return _uniqByOID(r)

    def mustOIDs(self, *extra):
        r = []
        for oc in self.objectClasses(*extra):
            r.extend(oc.must)
        return _uniqNames(r)

    def mayOIDs(self, *extra):
        r = []
        for oc in self.objectClasses(*extra):
            r.extend(oc.may)
        return _uniqNames(r, exclude=self.mustOIDs(*extra))

    def validAttributeOIDs(self, *extra):
        return self.mustOIDs(*extra) + self.mayOIDs(*extra)

    def _attributeTypes(self, oids):
        r = []
        for oid in oids:
            at = self.schema.attributeType(oid)
            if at is None:
                log.msg("Unknown attribute type %r in objectClasses of %s" % (oid, self.getDN()))
                continue
            r.append(at)
        return _uniqByOID(r)

    def mustAttributeTypes(self, *extra):
        return self._attributeTypes(self.mustOIDs(*extra))

    def mayAttributeTypes(self, *extra):
        return self._attributeTypes(self.mayOIDs(*extra))

    def validAttributeTypes(self, *extra):
        return self._attributeTypes(self.validAttributeOIDs(*extra))

    def isValidAttribute(self, attributeType):
        at = self.schema.attributeType(attributeType)
        if at is None:
            return False
        return at.oid in {x.oid for x in self.validAttributeTypes()}

    @staticmethod
    def _skeleton(attributeTypes):
        r = {}
        for at in attributeTypes:
            if at.single_value:
                r[at.getName()] = ""
            else:
                r[at.getName()] = []
        return r

    def mustAttributesDict(self, *extra):
        return self._skeleton(self.mustAttributeTypes(*extra))

    def mayAttributesDict(self, *extra):
        return self._skeleton(self.mayAttributeTypes(*extra))

    def validAttributesDict(self, *extra):
        return self._skeleton(self.validAttributeTypes(*extra))

    def branchset(self):
        return Branchset(self, branchOptions=self._branchOptions())

    def filter(self, *criteria):
        return self.branchset().filter(*criteria)

    def scope(self, scope):
        return self.branchset().scope(scope)

    def select(self, *attributes):
        return self.branchset().select(*attributes)

    def search(self, scope="subtree", filter=None, **params):
        """
        Search below this Branch and return the results as Branches.
        C{params} accepts C{select}, C{limit} and C{timeout}.
        """
        bs = Branchset(
            self,
            filter=filter,
            scope=scope,
            select=params.get("select", ()),
            limit=params.get("limit", 0),
            timeout=params.get("timeout", 0),
            branchOptions=self._branchOptions(),
        )
        return bs.all()

    def __add__(self, other):
        return self.branchset() + other

    def __repr__(self):
        return "%s(%r)" % (self.__class__.__name__, self.getDN())


def _uniqNames(names, exclude=()):
    seen = {x.lower() for x in exclude}
    r = []
    for name in names:
        if name.lower() not in seen:
            seen.add(name.lower())
            r.append(name)
    return r
