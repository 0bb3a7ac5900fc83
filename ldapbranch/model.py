"""
Capabilities: behaviour that applies to the entries of a directory which
carry a set of objectClasses, live below one of a set of bases, or both.

    people = ModelRegistries(directory)

    @people.register(objectClasses=['inetOrgPerson'])
    class Person(Capability):
        def fullName(self):
            return self.branch['cn']

    for entry in people.registryFor(Model).search(Person):
        print(entry.adapt(Person).fullName())
"""

from twisted.python import log

from ldapbranch import config
from ldapbranch._encoder import to_unicode
from ldapbranch.branch import Branch, rawAttributes
from ldapbranch.branchcollection import BranchCollection
from ldapbranch.branchset import Branchset
from ldapbranch.distinguishedname import DistinguishedName


class ModelError(Exception):
    """The capabilities of a model are misconfigured."""


class CapabilityNotApplicable(Exception):
    """The capability does not apply to the entry."""

    def __init__(self, capability, entry):
        Exception.__init__(self)
        self.capability = capability
        self.entry = entry

    def __str__(self):
        return "%s does not apply to %s" % (self.capability.__name__, self.entry.getDN())


class Capability:
    """
    Base class for capabilities. Subclasses declare the C{objectClasses}
    an entry must have and the C{bases} it must live under; an instance
    wraps one applicable entry as C{branch}.
    """

    objectClasses = ()
    bases = ()
    modelClass = None

    def __init__(self, branch):
        self.branch = branch

    def __repr__(self):
        return "%s(%r)" % (self.__class__.__name__, self.branch)


class CapabilityRecord:
    def __init__(self, capability, objectClasses, bases, modelClass):
        self.capability = capability
        self.objectClasses = tuple(objectClasses)
        self.bases = tuple(bases)
        self.modelClass = modelClass

    def hasCriteria(self):
        return bool(self.objectClasses or self.bases)

    def matchesObjectClasses(self, classes):
        """Are all declared objectClasses among C{classes}."""
        if not self.objectClasses:
            return False
        classes = {x.lower() for x in classes}
        return all(x.lower() in classes for x in self.objectClasses)

    def matchesDN(self, dn):
        """Is C{dn} at or below one of the declared bases."""
        return any(base.contains(dn) for base in self.bases)

    def __repr__(self):
        return "<%s %s objectClasses=%r bases=%r>" % (
            self.__class__.__name__,
            self.capability.__name__,
            list(self.objectClasses),
            [x.getText() for x in self.bases],
        )


def _classNames(classes):
    """Accept objectClass names as arguments or as a single iterable."""
    if len(classes) == 1 and not isinstance(classes[0], (str, bytes)):
        classes = classes[0]
    return [to_unicode(x) for x in classes]


class CapabilityRegistry:
    """
    The capabilities registered for one model class, indexed by
    objectClass and by base DN.
    """

    def __init__(self, modelClass, directory=None, config=None):
        if not (isinstance(modelClass, type) and issubclass(modelClass, Model)):
            raise ModelError("%r is not a Model class" % (modelClass,))
        self.modelClass = modelClass
        self.directory = directory
        self.config = config
        self._records = {}
        self._byObjectClass = {}
        self._byBase = {}

    def __contains__(self, capability):
        return capability in self._records

    def __iter__(self):
        return iter(list(self._records))

    def register(self, capability=None, objectClasses=None, bases=None):
        """
        Register C{capability}, taking its criteria from the arguments or
        from its class attributes. Without a capability, return a class
        decorator.
        """
        if capability is None:
            return lambda c: self.register(c, objectClasses=objectClasses, bases=bases)

        if objectClasses is None:
            objectClasses = getattr(capability, "objectClasses", ())
        if bases is None:
            bases = getattr(capability, "bases", ())
        if isinstance(objectClasses, (str, bytes)):
            objectClasses = [objectClasses]
        if isinstance(bases, (str, bytes)):
            bases = [bases]

        if capability in self._records:
            self.unregister(capability)

        record = CapabilityRecord(
            capability,
            [to_unicode(x) for x in objectClasses],
            [DistinguishedName(x) for x in bases],
            self.modelClass,
        )
        self._records[capability] = record
        for oc in record.objectClasses:
            self._byObjectClass.setdefault(oc.lower(), []).append(capability)
        for base in record.bases:
            self._byBase.setdefault(base, []).append(capability)

        log.msg("Registered %r with %s" % (record, self.modelClass.__name__), debug=True)
        return capability

    def unregister(self, capability):
        record = self._records.pop(capability, None)
        if record is None:
            return None
        for oc in record.objectClasses:
            self._byObjectClass[oc.lower()].remove(capability)
            if not self._byObjectClass[oc.lower()]:
                del self._byObjectClass[oc.lower()]
        for base in record.bases:
            self._byBase[base].remove(capability)
            if not self._byBase[base]:
                del self._byBase[base]
        return record

    def recordFor(self, capability):
        return self._records.get(capability)

    def capabilitiesForObjectClass(self, objectClass):
        return list(self._byObjectClass.get(to_unicode(objectClass).lower(), ()))

    def capabilitiesForBase(self, base):
        return list(self._byBase.get(DistinguishedName(base), ()))

    def _ordered(self, candidates):
        return [c for c in self._records if c in candidates]

    def mixinsForObjectClasses(self, *classes):
        """
        Capabilities whose declared objectClasses are all among
        C{classes}. Capabilities declaring none are never returned.
        """
        classes = _classNames(classes)
        candidates = set()
        for oc in classes:
            candidates.update(self._byObjectClass.get(oc.lower(), ()))
        return self._ordered(
            {c for c in candidates if self._records[c].matchesObjectClasses(classes)})

    def mixinsForDN(self, dn):
        """Capabilities with a declared base at or above C{dn}."""
        dn = DistinguishedName(dn)
        rdns = dn.split()
        candidates = set()
        for i in range(len(rdns) + 1):
            ancestor = DistinguishedName(listOfRDNs=rdns[i:])
            candidates.update(self._byBase.get(ancestor, ()))
        return self._ordered(candidates)

    def mixinsForEntry(self, entry):
        """
        Capabilities that apply to C{entry}: every declared objectClass is
        present and, if bases are declared, one of them contains the
        entry.
        """
        classes = list(entry.objectClassNames())
        r = []
        for capability, record in self._records.items():
            if not record.hasCriteria():
                continue
            if record.objectClasses and not record.matchesObjectClasses(classes):
                continue
            if record.bases and not record.matchesDN(entry.dn):
                continue
            r.append(capability)
        return r

    def _directory(self, directory):
        if directory is None:
            directory = self.directory
        if directory is None:
            raise ModelError("No directory to search for %s" % self.modelClass.__name__)
        return directory

    def _defaultBase(self, directory):
        base = getattr(directory, "baseDN", None)
        if base is not None:
            return DistinguishedName(base)
        return (self.config or config.LDAPConfig()).getBaseDN()

    def _record(self, capability):
        record = self.recordFor(capability)
        if record is None:
            raise ModelError("%s is not registered with %s"
                             % (capability.__name__, self.modelClass.__name__))
        return record

    def search(self, capability, directory=None):
        """
        Return a Branchset over the entries C{capability} applies to, or
        a BranchCollection with one Branchset per declared base.

        @raise ModelError: the capability declares no objectClasses and
        no bases.
        """
        record = self._record(capability)
        if not record.hasCriteria():
            raise ModelError("%s has no search criteria defined" % capability.__name__)
        directory = self._directory(directory)

        filter = None
        if len(record.objectClasses) == 1:
            filter = ("objectClass", record.objectClasses[0])
        elif record.objectClasses:
            filter = ["and"] + [("objectClass", oc) for oc in record.objectClasses]

        bases = record.bases or (self._defaultBase(directory),)
        branchsets = []
        for base in bases:
            branch = self.modelClass(directory, base, registry=self)
            branchsets.append(Branchset(branch, filter=filter,
                                        branchOptions=branch._branchOptions()))
        if len(branchsets) == 1:
            return branchsets[0]
        return BranchCollection(*branchsets)

    def instantiate(self, capability, dn, attributes=None, directory=None):
        """
        Return an unsaved entry at C{dn} to which C{capability} applies:
        its objectClasses are merged into C{attributes} and the values of
        the RDN are added. Call create() on it to write it.
        """
        record = self._record(capability)
        directory = self._directory(directory)
        dn = DistinguishedName(dn)
        attributes = rawAttributes(attributes)

        classes = list(attributes.get("objectClass", None) or [])
        seen = {x.lower() for x in classes}
        for oc in record.objectClasses:
            if oc.lower() not in seen:
                seen.add(oc.lower())
                classes.append(oc)
        attributes["objectClass"] = classes

        for ava in dn.split()[0].split():
            values = list(attributes.get(ava.attributeType, None) or [])
            if ava.value.lower() not in {x.lower() for x in values}:
                values.append(ava.value)
            attributes[ava.attributeType] = values

        return self.modelClass(directory, dn, entry=dict(attributes.items()), registry=self)


class ModelRegistries:
    """
    One CapabilityRegistry per model class. A capability belongs to
    exactly one of them.
    """

    def __init__(self, directory=None, config=None):
        self.directory = directory
        self.config = config
        self._registries = {}

    def registryFor(self, modelClass):
        if modelClass not in self._registries:
            self._registries[modelClass] = CapabilityRegistry(
                modelClass, directory=self.directory, config=self.config)
        return self._registries[modelClass]

    def modelClassFor(self, capability):
        for modelClass, registry in self._registries.items():
            if capability in registry:
                return modelClass
        return None

    def register(self, capability=None, modelClass=None, objectClasses=None, bases=None):
        """
        Register C{capability} with the registry of C{modelClass},
        removing it from any other. The model class defaults to the
        capability's C{modelClass} attribute, then to L{Model}. Without a
        capability, return a class decorator.
        """
        if capability is None:
            return lambda c: self.register(
                c, modelClass=modelClass, objectClasses=objectClasses, bases=bases)
        if modelClass is None:
            modelClass = getattr(capability, "modelClass", None) or Model
        for other, registry in self._registries.items():
            if other is not modelClass and capability in registry:
                log.msg("Moving %s from %s to %s"
                        % (capability.__name__, other.__name__, modelClass.__name__),
                        debug=True)
                registry.unregister(capability)
        return self.registryFor(modelClass).register(
            capability, objectClasses=objectClasses, bases=bases)


class Model(Branch):
    """
    A Branch that knows the capability registry it was found through.
    """

    def __init__(self, directory, dn, entry=None, includeOperational=None, registry=None):
        Branch.__init__(self, directory, dn, entry=entry, includeOperational=includeOperational)
        self.registry = registry

    def _branchOptions(self):
        options = Branch._branchOptions(self)
        options["registry"] = self.registry
        return options

    def capabilities(self):
        if self.registry is None:
            return []
        return self.registry.mixinsForEntry(self)

    def adapt(self, capability):
        """
        Wrap this entry in C{capability}.

        @raise CapabilityNotApplicable: the entry does not have what the
        capability requires.
        """
        if capability not in self.capabilities():
            raise CapabilityNotApplicable(capability, self)
        return capability(self)
