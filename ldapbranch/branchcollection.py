import itertools


def _asBranchset(value):
    if hasattr(value, "branchset"):
        return value.branchset()
    return value


class BranchCollection:
    """
    Several Branchsets enumerated as one. Results come back in the order
    of the Branchsets, each in directory order.

    Modifiers apply to every member and return a new collection.
    """

    def __init__(self, *branchsets):
        self.branchsets = [_asBranchset(x) for x in branchsets]

    def _each(self, name, *args, **kw):
        return self.__class__(*[getattr(bs, name)(*args, **kw) for bs in self.branchsets])

    def filter(self, *criteria):
        return self._each("filter", *criteria)

    def scope(self, scope):
        return self._each("scope", scope)

    def select(self, *attributes):
        return self._each("select", *attributes)

    def selectAll(self):
        return self._each("selectAll")

    def selectMore(self, *attributes):
        return self._each("selectMore", *attributes)

    def limit(self, limit):
        return self._each("limit", limit)

    def withoutLimit(self):
        return self._each("withoutLimit")

    def timeout(self, seconds):
        return self._each("timeout", seconds)

    def withoutTimeout(self):
        return self._each("withoutTimeout")

    def as_(self, branchClass, **branchOptions):
        return self._each("as_", branchClass, **branchOptions)

    def baseDNs(self):
        return [bs.baseDN() for bs in self.branchsets]

    def __iter__(self):
        return itertools.chain.from_iterable(self.branchsets)

    def all(self):
        return list(self)

    def first(self):
        for bs in self.branchsets:
            branch = bs.first()
            if branch is not None:
                return branch
        return None

    def isEmpty(self):
        return all(bs.isEmpty() for bs in self.branchsets)

    def map(self, attributeType):
        r = []
        for bs in self.branchsets:
            r.extend(bs.map(attributeType))
        return r

    def toDict(self, keyAttribute, valueAttribute=None):
        r = {}
        for bs in self.branchsets:
            r.update(bs.toDict(keyAttribute, valueAttribute))
        return r

    def __add__(self, other):
        if isinstance(other, BranchCollection):
            return self.__class__(*(self.branchsets + other.branchsets))
        return self.__class__(*(self.branchsets + [_asBranchset(other)]))

    def __repr__(self):
        return "<%s %r>" % (self.__class__.__name__, self.branchsets)
