"""
A directory kept in a dict, for tests and experiments.
"""

import datetime

from twisted.python import log
from twisted.python.util import InsensitiveDict
from zope.interface import implementer

from ldapbranch import interfaces
from ldapbranch.distinguishedname import DistinguishedName, RelativeDistinguishedName
from ldapbranch.interfaces import DNNotPresentError
from ldapbranch.ldapfilter import parseFilter


class EntryAlreadyExistsError(Exception):
    """An entry with that DN already exists."""

    def __init__(self, dn):
        Exception.__init__(self)
        self.dn = dn

    def __str__(self):
        return "%s: %s" % (self.__doc__, self.dn)


class NotAllowedOnNonLeafError(Exception):
    """The operation is not allowed on an entry that has children."""

    def __init__(self, dn):
        Exception.__init__(self)
        self.dn = dn

    def __str__(self):
        return "%s: %s" % (self.__doc__, self.dn)


def _timestamp():
    return datetime.datetime.now(datetime.timezone.utc).strftime("%Y%m%d%H%M%SZ")


def _removeValues(values, unwanted):
    unwanted = {x.lower() for x in unwanted}
    return [v for v in values if v.lower() not in unwanted]


@implementer(interfaces.IDirectory)
class InMemoryDirectory:
    """
    Entries live in insertion order in a dict keyed by DN, which is also
    the order searches return them in.
    """

    def __init__(self, baseDN, schema=None, controls=()):
        self.baseDN = DistinguishedName(baseDN)
        self._schema = dict(schema or {})
        self._controls = tuple(controls)
        self._entries = {}
        self._operational = {}

    def _lookup(self, dn):
        dn = DistinguishedName(dn)
        try:
            return dn, self._entries[dn]
        except KeyError:
            raise DNNotPresentError(dn.getText())

    def _hasChildren(self, dn):
        return any(other != dn and other.up() == dn for other in self._entries)

    def _asRaw(self, dn, attributes, select=()):
        wanted = {x.lower() for x in select}
        r = {"dn": dn.getText()}
        for k, v in attributes.items():
            if wanted and k.lower() not in wanted:
                continue
            r[k] = list(v)
        return r

    def _inScope(self, base, dn, scope):
        if scope == 0:
            return dn == base
        if scope == 1:
            return len(dn) == len(base) + 1 and base.contains(dn)
        return base.contains(dn)

    def _touch(self, dn):
        self._operational[dn]["modifyTimestamp"] = [_timestamp()]

    def search(self, base, scope, filterText, params):
        base, _ = self._lookup(base)
        node = parseFilter(filterText)
        limit = params.get("limit") or 0
        select = params.get("selectattrs") or ()

        results = []
        for dn, attributes in self._entries.items():
            if not self._inScope(base, dn, scope):
                continue
            if not node.match(attributes):
                continue
            results.append(self._asRaw(dn, attributes, select))
            if limit and len(results) >= limit:
                break
        log.msg("Search below %s for %s: %d results" % (base.getText(), filterText, len(results)),
                debug=True)
        return results

    def getEntry(self, dn):
        dn, attributes = self._lookup(dn)
        return self._asRaw(dn, attributes)

    def getExtendedEntry(self, dn):
        dn, attributes = self._lookup(dn)
        r = self._asRaw(dn, attributes)
        r.update({k: list(v) for k, v in self._operational[dn].items()})
        r["entryDN"] = [dn.getText()]
        r["hasSubordinates"] = ["TRUE" if self._hasChildren(dn) else "FALSE"]
        return r

    def create(self, dn, attributes):
        dn = DistinguishedName(dn)
        if dn in self._entries:
            raise EntryAlreadyExistsError(dn.getText())
        if not self.baseDN.contains(dn):
            raise DNNotPresentError(dn.getText())
        if dn != self.baseDN and dn.up() not in self._entries:
            raise DNNotPresentError(dn.up().getText())

        entry = InsensitiveDict()
        for k, v in attributes.items():
            if k.lower() != "dn" and v:
                entry[k] = list(v)
        self._entries[dn] = entry
        now = _timestamp()
        self._operational[dn] = {"createTimestamp": [now], "modifyTimestamp": [now]}

    def modify(self, dn, changes):
        dn, attributes = self._lookup(dn)
        for k, v in changes.items():
            if v:
                attributes[k] = list(v)
            elif k in attributes:
                del attributes[k]
        self._touch(dn)

    def delete(self, dn, attributes=None):
        """
        Delete the entry, or some of its attributes. C{attributes} is a
        list of attribute types, or a mapping of attribute type to the
        values to remove from it.
        """
        dn, entry = self._lookup(dn)
        if attributes is None:
            if self._hasChildren(dn):
                raise NotAllowedOnNonLeafError(dn.getText())
            del self._entries[dn]
            del self._operational[dn]
            return

        if not hasattr(attributes, "items"):
            attributes = {x: None for x in attributes}
        for k, values in attributes.items():
            if k not in entry:
                continue
            if values:
                remaining = _removeValues(entry[k], values)
                if remaining:
                    entry[k] = remaining
                    continue
            del entry[k]
        self._touch(dn)

    def _renamedAttributes(self, attributes, oldRDN, newRDN, changes):
        r = InsensitiveDict()
        for k, v in attributes.items():
            r[k] = list(v)
        for ava in oldRDN.split():
            if ava.attributeType in r:
                r[ava.attributeType] = _removeValues(r[ava.attributeType], [ava.value])
        for ava in newRDN.split():
            values = r.get(ava.attributeType, None) or []
            if ava.value.lower() not in {x.lower() for x in values}:
                values.append(ava.value)
            r[ava.attributeType] = values
        for k, v in (changes or {}).items():
            r[k] = list(v)
        for k in [k for k, v in r.items() if not v]:
            del r[k]
        return r

    def move(self, dn, newRDN, attributes):
        dn, entry = self._lookup(dn)
        newRDN = RelativeDistinguishedName(newRDN)
        newDN = DistinguishedName(listOfRDNs=(newRDN,) + dn.split()[1:])
        if newDN in self._entries:
            raise EntryAlreadyExistsError(newDN.getText())

        renamed = self._renamedAttributes(entry, dn.split()[0], newRDN, attributes)
        entries = {}
        operational = {}
        depth = len(dn)
        for old, attrs in self._entries.items():
            new = old
            if dn.contains(old):
                new = DistinguishedName(listOfRDNs=old.split()[:len(old) - depth] + newDN.split())
            entries[new] = renamed if old == dn else attrs
            operational[new] = self._operational[old]
        self._entries = entries
        self._operational = operational
        self._touch(newDN)

    def copy(self, dn, newDN, attributes):
        dn, entry = self._lookup(dn)
        newDN = DistinguishedName(newDN)
        copied = self._renamedAttributes(entry, dn.split()[0], newDN.split()[0], attributes)
        self.create(newDN, copied)

    def schema(self):
        return self._schema

    def registeredControls(self):
        return self._controls
