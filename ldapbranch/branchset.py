"""
Branchsets: immutable, chainable descriptions of a search below a
Branch::

    people = Branchset(root).filter({'objectClass': 'person'})
    for person in people.scope('one').select('cn', 'mail').limit(10):
        print(person['cn'])

Nothing is sent to the directory until the Branchset is enumerated.
"""

from twisted.python import log

from ldapbranch import ldapfilter
from ldapbranch._encoder import to_unicode
from ldapbranch.branchcollection import BranchCollection

LDAP_SCOPE_baseObject = 0
LDAP_SCOPE_singleLevel = 1
LDAP_SCOPE_wholeSubtree = 2

SCOPES = {
    "base": LDAP_SCOPE_baseObject,
    "one": LDAP_SCOPE_singleLevel,
    "onelevel": LDAP_SCOPE_singleLevel,
    "sub": LDAP_SCOPE_wholeSubtree,
    "subtree": LDAP_SCOPE_wholeSubtree,
}

DEFAULT_SCOPE = "subtree"


class InvalidScopeError(ValueError):
    """The search scope is not one of base, onelevel or subtree."""

    def __init__(self, scope):
        ValueError.__init__(self)
        self.scope = scope

    def __str__(self):
        return "Invalid search scope %r" % (self.scope,)


def scopeValue(scope):
    """
    Map a scope given as one of the LDAP_SCOPE_* integers or a synonym
    string to its integer.
    """
    if isinstance(scope, int) and scope in SCOPES.values():
        return scope
    if isinstance(scope, str) and scope.lower() in SCOPES:
        return SCOPES[scope.lower()]
    raise InvalidScopeError(scope)


def _first(value):
    if isinstance(value, (list, tuple)):
        if not value:
            return None
        return value[0]
    return value


_controlledClasses = {}


def _withControls(cls, controls):
    """
    Return the subclass of C{cls} that mixes in C{controls}, creating and
    caching it on first use.
    """
    if not controls or cls.controls == controls:
        return cls
    key = (cls, controls)
    if key not in _controlledClasses:
        name = "%sWith%s" % (cls.__name__, "".join(c.__name__ for c in controls))
        _controlledClasses[key] = type(name, controls + (cls,), {"controls": controls})
    return _controlledClasses[key]


class Branchset:
    """
    A search below C{branch}, described by its filter, scope, selected
    attributes, limit and timeout.

    Every modifier returns a new Branchset with its own copy of the
    options; the base branch is shared.
    """

    controls = ()

    def __new__(cls, branch, *args, **kw):
        controls = ()
        registered = getattr(branch.directory, "registeredControls", None)
        if registered is not None:
            controls = tuple(registered())
        return object.__new__(_withControls(cls, controls))

    def __init__(self, branch, filter=None, scope=None, select=(), limit=0,
                 timeout=0, branchClass=None, branchOptions=None):
        self.branch = branch
        if filter is None:
            filter = ldapfilter.LDAPFilterMatchAll
        else:
            filter = ldapfilter.compileFilter(filter)
        if scope is None:
            scope = DEFAULT_SCOPE
        if branchClass is None:
            branchClass = type(branch)
        self.options = {
            "filter": filter,
            "scope": scope,
            "select": tuple(to_unicode(x) for x in select),
            "limit": int(limit),
            "timeout": float(timeout),
            "branchClass": branchClass,
            "branchOptions": dict(branchOptions or {}),
            "clientControls": (),
            "serverControls": (),
        }

    def clone(self, **options):
        """Return a copy of this Branchset with C{options} merged in."""
        new = object.__new__(self.__class__)
        new.branch = self.branch
        new.options = dict(self.options)
        new.options["branchOptions"] = dict(self.options["branchOptions"])
        new.options.update(options)
        return new

    def filter(self, *criteria):
        """
        Return a Branchset whose filter is the current one ANDed with the
        compiled C{criteria}.
        """
        if not criteria:
            return self.clone()
        node = ldapfilter.compileFilter(*criteria)
        return self.clone(filter=ldapfilter.conjoin(self.options["filter"], node))

    def scope(self, scope):
        if isinstance(scope, str):
            scope = scope.lower() if scope.lower() in SCOPES else scope
        return self.clone(scope=scope)

    def select(self, *attributes):
        return self.clone(select=tuple(to_unicode(x) for x in attributes))

    def selectAll(self):
        return self.clone(select=())

    def selectMore(self, *attributes):
        select = list(self.options["select"])
        seen = {x.lower() for x in select}
        for attr in attributes:
            attr = to_unicode(attr)
            if attr.lower() not in seen:
                seen.add(attr.lower())
                select.append(attr)
        return self.clone(select=tuple(select))

    def limit(self, limit):
        return self.clone(limit=int(limit))

    def withoutLimit(self):
        return self.clone(limit=0)

    def timeout(self, seconds):
        return self.clone(timeout=float(seconds))

    def withoutTimeout(self):
        return self.clone(timeout=0.0)

    def as_(self, branchClass, **branchOptions):
        """
        Return a Branchset that wraps its results in C{branchClass},
        built with C{branchOptions}. When C{branchClass} is a subclass of
        the current one, C{branchOptions} are merged over the options
        already set; otherwise they replace them.
        """
        if issubclass(branchClass, self.options["branchClass"]):
            options = dict(self.options["branchOptions"])
            options.update(branchOptions)
            branchOptions = options
        return self.clone(branchClass=branchClass, branchOptions=branchOptions)

    def getFilter(self):
        return self.options["filter"]

    def filterString(self):
        return self.options["filter"].asText()

    def getScope(self):
        return self.options["scope"]

    def getSelect(self):
        return list(self.options["select"])

    def getLimit(self):
        return self.options["limit"]

    def getTimeout(self):
        return self.options["timeout"]

    def getBranchClass(self):
        return self.options["branchClass"]

    def baseDN(self):
        return self.branch.dn

    def getClientControls(self):
        return list(self.options["clientControls"])

    def getServerControls(self):
        return list(self.options["serverControls"])

    def _search(self, limit=None):
        directory = self.branch.directory
        scope = scopeValue(self.options["scope"])
        if limit is None:
            limit = self.options["limit"]
        params = {
            "limit": limit,
            "selectattrs": list(self.options["select"]),
            "timeout": self.options["timeout"],
            "clientControls": self.getClientControls(),
            "serverControls": self.getServerControls(),
        }
        base = self.baseDN().getText()
        filterText = self.filterString()
        log.msg("Searching %s scope=%d filter=%s params=%r" % (base, scope, filterText, params),
                debug=True)
        results = directory.search(base, scope, filterText, params)

        branchClass = self.options["branchClass"]
        branchOptions = self.options["branchOptions"]
        for raw in results:
            yield branchClass.fromEntry(raw, directory, **branchOptions)

    def __iter__(self):
        return self._search()

    def all(self):
        return list(self._search())

    def first(self):
        for branch in self._search(limit=1):
            return branch
        return None

    def isEmpty(self):
        return not list(self._search(limit=1))

    def map(self, attributeType):
        """Return C{branch[attributeType]} of each result."""
        return [branch[attributeType] for branch in self._search()]

    def toDict(self, keyAttribute, valueAttribute=None):
        """
        Map the first value of C{keyAttribute} of each result to its raw
        entry, or to the first value of C{valueAttribute} when given.
        """
        r = {}
        for branch in self._search():
            key = _first(branch[keyAttribute])
            if valueAttribute is None:
                r[key] = branch.entry()
            else:
                r[key] = _first(branch[valueAttribute])
        return r

    def combine(self, other):
        if not isinstance(other, Branchset):
            other = other.branchset()
        return BranchCollection(self, other)

    __add__ = combine

    def __repr__(self):
        return "<%s base=%r filter=%s scope=%s select=%r limit=%d timeout=%s>" % (
            self.__class__.__name__,
            self.baseDN().getText(),
            self.filterString(),
            self.options["scope"],
            self.getSelect(),
            self.options["limit"],
            self.options["timeout"],
        )
