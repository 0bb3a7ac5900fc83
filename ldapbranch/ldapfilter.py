"""
LDAP search filters: the node types, the compiler that turns Python
criteria into nodes, and a parser for filter text.

RFC4515:

        filter     = "(" filtercomp ")"
        filtercomp = and / or / not / item
        and        = "&" filterlist
        or         = "|" filterlist
        not        = "!" filter
        filterlist = 1*filter
        item       = simple / present / substring
        simple     = attr filtertype value
        filtertype = equal / approx / greater / less
        equal      = "="
        approx     = "~="
        greater    = ">="
        less       = "<="
        present    = attr "=*"
        substring  = attr "=" [initial] any [final]
        initial    = value
        any        = "*" *(value "*")
        final      = value
"""

import re
import string
from collections.abc import Mapping

from pyparsing import (
    CharsNotIn,
    Combine,
    Forward,
    Group,
    Literal,
    OneOrMore,
    Optional,
    ParseException,
    StringEnd,
    StringStart,
    Suppress,
    Word,
    ZeroOrMore,
)

from ldapbranch._encoder import to_text, to_unicode


class InvalidLDAPFilter(ValueError):
    def __init__(self, msg, loc, text):
        ValueError.__init__(self)
        self.msg = msg
        self.loc = loc
        self.text = text

    def __str__(self):
        return "Invalid LDAP filter: %s at point %d in %r" % (
            self.msg,
            self.loc,
            self.text,
        )


def escape(s):
    s = s.replace("\\", r"\5c")
    s = s.replace("*", r"\2a")
    s = s.replace("(", r"\28")
    s = s.replace(")", r"\29")
    s = s.replace("\0", r"\00")
    return s


def _values(entry, attr):
    return [to_text(v) for v in entry.get(attr, None) or ()]


def _ordered(value, assertion):
    """Compare numerically when both sides are integers."""
    try:
        return int(value), int(assertion)
    except ValueError:
        return value.lower(), assertion.lower()


class LDAPFilter:
    """
    Base class of all filter nodes.

    Nodes are plain values: they compare structurally and never reorder
    or de-duplicate their children, so the text produced by asText is
    fully determined by how the node was built.
    """

    def asText(self):
        raise NotImplementedError("asText method is not implemented")

    def match(self, entry):
        """
        Does C{entry}, a case-insensitive mapping of attribute type to
        list of values, satisfy this filter.
        """
        raise NotImplementedError("match method is not implemented")

    def _key(self):
        raise NotImplementedError()

    def __str__(self):
        return self.asText()

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return self._key() == other._key()

    def __ne__(self, other):
        r = self.__eq__(other)
        if r is NotImplemented:
            return r
        return not r

    def __hash__(self):
        return hash((self.__class__, self._key()))

    def __repr__(self):
        return "%s(%r)" % (self.__class__.__name__, self.asText())


class LDAPFilter_present(LDAPFilter):
    def __init__(self, attr):
        self.attr = to_unicode(attr)

    def asText(self):
        return "(%s=*)" % self.attr

    def match(self, entry):
        return bool(entry.get(self.attr, None))

    def _key(self):
        return self.attr.lower()


class _AttributeValueAssertion(LDAPFilter):
    operator = None

    def __init__(self, attr, value):
        self.attr = to_unicode(attr)
        self.value = to_text(value)

    def asText(self):
        return "(%s%s%s)" % (self.attr, self.operator, escape(self.value))

    def _key(self):
        return (self.attr.lower(), self.value)


class LDAPFilter_equalityMatch(_AttributeValueAssertion):
    operator = "="

    def match(self, entry):
        wanted = self.value.lower()
        return any(v.lower() == wanted for v in _values(entry, self.attr))


class LDAPFilter_approxMatch(_AttributeValueAssertion):
    operator = "~="

    def match(self, entry):
        wanted = " ".join(self.value.lower().split())
        return any(" ".join(v.lower().split()) == wanted
                   for v in _values(entry, self.attr))


class LDAPFilter_greaterOrEqual(_AttributeValueAssertion):
    operator = ">="

    def match(self, entry):
        for v in _values(entry, self.attr):
            mine, its = _ordered(v, self.value)
            if mine >= its:
                return True
        return False


class LDAPFilter_lessOrEqual(_AttributeValueAssertion):
    operator = "<="

    def match(self, entry):
        for v in _values(entry, self.attr):
            mine, its = _ordered(v, self.value)
            if mine <= its:
                return True
        return False


class LDAPFilter_substrings(LDAPFilter):
    def __init__(self, attr, initial=None, any=(), final=None):
        self.attr = to_unicode(attr)
        self.initial = initial
        self.any = tuple(any)
        self.final = final

    def asText(self):
        parts = [escape(self.initial or "")]
        parts.extend(escape(x) for x in self.any)
        parts.append(escape(self.final or ""))
        return "(%s=%s)" % (self.attr, "*".join(parts))

    def _pattern(self):
        parts = [re.escape(self.initial or "")]
        parts.extend(re.escape(x) for x in self.any)
        parts.append(re.escape(self.final or ""))
        return re.compile(".*".join(parts), re.IGNORECASE | re.DOTALL)

    def match(self, entry):
        pattern = self._pattern()
        return any(pattern.fullmatch(v) for v in _values(entry, self.attr))

    def _key(self):
        return (self.attr.lower(), self.initial, self.any, self.final)


class _LDAPFilterSet(LDAPFilter):
    operator = None

    def __init__(self, children):
        self.children = tuple(children)

    def __iter__(self):
        return iter(self.children)

    def __len__(self):
        return len(self.children)

    def asText(self):
        return "(" + self.operator + "".join(x.asText() for x in self.children) + ")"

    def _key(self):
        return self.children


class LDAPFilter_and(_LDAPFilterSet):
    operator = "&"

    def match(self, entry):
        return all(x.match(entry) for x in self.children)


class LDAPFilter_or(_LDAPFilterSet):
    operator = "|"

    def match(self, entry):
        return any(x.match(entry) for x in self.children)


class LDAPFilter_not(LDAPFilter):
    def __init__(self, value):
        self.value = value

    def asText(self):
        return "(!" + self.value.asText() + ")"

    def match(self, entry):
        return not self.value.match(entry)

    def _key(self):
        return self.value


class LDAPFilter_literal(LDAPFilter):
    """
    A pre-formed filter string. It is written out verbatim and only
    parsed when it has to be evaluated locally.
    """

    def __init__(self, text):
        self.text = to_unicode(text)
        self._parsed = None

    def asText(self):
        return self.text

    def match(self, entry):
        if self._parsed is None:
            self._parsed = parseFilter(self.text)
        return self._parsed.match(entry)

    def _key(self):
        return self.text


LDAPFilterMatchAll = LDAPFilter_present("objectClass")


filter_ = Forward()
attr = Word(
    string.ascii_letters,
    string.ascii_letters + string.digits + ";-",
) | Combine(Word(string.digits) + ZeroOrMore(Literal(".") + Word(string.digits)))
attr.leave_whitespace()
attr.set_name("attr")
hexdigits = Word(string.hexdigits, exact=2)
hexdigits.set_name("hexdigits")
escaped = Suppress(Literal("\\")) + hexdigits
escaped.set_name("escaped")


def _p_escaped(s, l, t):
    text = t[0]
    return chr(int(text, 16))


escaped.set_parse_action(_p_escaped)
value = Combine(OneOrMore(CharsNotIn("*()\\\0") | escaped))
value.set_name("value")
equal = Literal("=")
equal.set_parse_action(lambda s, l, t: LDAPFilter_equalityMatch)
approx = Literal("~=")
approx.set_parse_action(lambda s, l, t: LDAPFilter_approxMatch)
greater = Literal(">=")
greater.set_parse_action(lambda s, l, t: LDAPFilter_greaterOrEqual)
less = Literal("<=")
less.set_parse_action(lambda s, l, t: LDAPFilter_lessOrEqual)
filtertype = equal | approx | greater | less
filtertype.set_name("filtertype")
simple = attr + filtertype + value
simple.leave_whitespace()
simple.set_name("simple")


def _p_simple(s, l, t):
    attr, filtertype, value = t
    return filtertype(attr, value)


simple.set_parse_action(_p_simple)
present = attr + Suppress(Literal("=*"))
present.set_parse_action(lambda s, l, t: LDAPFilter_present(t[0]))
initial = value.copy()
initial.set_parse_action(lambda s, l, t: [("initial", t[0])])
initial.set_name("initial")
any_value = value + Suppress(Literal("*"))
any_value.set_parse_action(lambda s, l, t: [("any", t[0])])
any_ = Suppress(Literal("*")) + ZeroOrMore(any_value)
any_.set_name("any")
final = value.copy()
final.set_name("final")
final.set_parse_action(lambda s, l, t: [("final", t[0])])
substrings = Group(Optional(initial) + any_ + Optional(final))
substring = attr + Suppress(Literal("=")) + substrings
substring.set_name("substring")


def _substringFilter(attr, parts):
    kw = {"initial": None, "any": [], "final": None}
    for kind, text in parts:
        if kind == "any":
            kw["any"].append(text)
        else:
            kw[kind] = text
    return LDAPFilter_substrings(attr, **kw)


def _p_substring(s, l, t):
    attrtype, parts = t
    return _substringFilter(attrtype, parts)


substring.set_parse_action(_p_substring)
item = simple ^ present ^ substring
item.set_name("item")
item.leave_whitespace()
not_ = Suppress(Literal("!")) + filter_
not_.set_parse_action(lambda s, l, t: LDAPFilter_not(t[0]))
not_.set_name("not")
filterlist = OneOrMore(filter_)
or_ = Suppress(Literal("|")) + filterlist
or_.set_parse_action(lambda s, l, t: LDAPFilter_or(t))
or_.set_name("or")
and_ = Suppress(Literal("&")) + filterlist
and_.set_parse_action(lambda s, l, t: LDAPFilter_and(t))
and_.set_name("and")
filtercomp = and_ | or_ | not_ | item
filtercomp.set_name("filtercomp")
filter_ <<= (
    Suppress(Literal("(").leave_whitespace())
    + filtercomp
    + Suppress(Literal(")").leave_whitespace())
)
filter_.set_name("filter")
filtercomp.leave_whitespace()
filter_.leave_whitespace()

toplevel = StringStart().leave_whitespace() + filter_ + StringEnd().leave_whitespace()
toplevel.leave_whitespace()
toplevel.set_name("toplevel")


def parseFilter(s):
    """
    Parse RFC4515 filter text into filter nodes.
    """
    s = to_unicode(s)
    try:
        x = toplevel.parse_string(s)
    except ParseException as e:
        raise InvalidLDAPFilter(e.msg, e.loc, e.line)
    assert len(x) == 1
    return x[0]


maybeSubString_value = Combine(OneOrMore(CharsNotIn("*\\\0") | escaped))
maybeSubString_value.leave_whitespace()

maybeSubString_initial = maybeSubString_value.copy()
maybeSubString_initial.set_parse_action(lambda s, l, t: [("initial", t[0])])
maybeSubString_any_value = maybeSubString_value + Suppress(Literal("*"))
maybeSubString_any_value.set_parse_action(lambda s, l, t: [("any", t[0])])
maybeSubString_final = maybeSubString_value.copy()
maybeSubString_final.set_parse_action(lambda s, l, t: [("final", t[0])])

maybeSubString_simple = maybeSubString_value.copy()


def _p_maybeSubString_simple(s, l, t):
    return lambda attr: LDAPFilter_equalityMatch(attr, t[0])


maybeSubString_simple.set_parse_action(_p_maybeSubString_simple)

maybeSubString_present = Literal("*")


def _p_maybeSubString_present(s, l, t):
    return lambda attr: LDAPFilter_present(attr)


maybeSubString_present.set_parse_action(_p_maybeSubString_present)

maybeSubString_substring = Group(
    Optional(maybeSubString_initial)
    + Suppress(Literal("*"))
    + ZeroOrMore(maybeSubString_any_value)
    + Optional(maybeSubString_final)
)


def _p_maybeSubString_substring(s, l, t):
    return lambda attr: _substringFilter(attr, t[0])


maybeSubString_substring.set_parse_action(_p_maybeSubString_substring)

maybeSubString = (
    maybeSubString_simple ^ maybeSubString_present ^ maybeSubString_substring
) + StringEnd()
maybeSubString.leave_whitespace()


def parseMaybeSubstring(attrType, s):
    """
    Turn an assertion value that may contain C{*} wildcards into an
    equality, presence or substring filter on C{attrType}.
    """
    try:
        x = maybeSubString.parse_string(s)
    except ParseException as e:
        raise InvalidLDAPFilter(e.msg, e.loc, e.line)
    assert len(x) == 1
    fn = x[0]
    return fn(attrType)


OPERATORS_AND = ("and", "&")
OPERATORS_OR = ("or", "|")
OPERATORS_NOT = ("not", "!")
COMPARISONS = {
    "gte": LDAPFilter_greaterOrEqual,
    ">=": LDAPFilter_greaterOrEqual,
    "lte": LDAPFilter_lessOrEqual,
    "<=": LDAPFilter_lessOrEqual,
    "approx": LDAPFilter_approxMatch,
    "~=": LDAPFilter_approxMatch,
}


def _operator(item):
    if isinstance(item, str):
        op = item.lower()
        if (op in OPERATORS_AND or op in OPERATORS_OR
                or op in OPERATORS_NOT or op in COMPARISONS
                or op == "present"):
            return op
    return None


def _isAttributeName(item):
    return (isinstance(item, str)
            and not item.startswith("(")
            and _operator(item) is None)


_loneBackslash = re.compile(r"\\(?![0-9A-Fa-f]{2})")


def _compileItem(attr, value):
    attr = to_text(attr)
    if isinstance(value, (list, tuple, set, frozenset)):
        nodes = [_compileItem(attr, v) for v in value]
        if not nodes:
            raise ValueError("No values given for attribute %r" % attr)
        if len(nodes) == 1:
            return nodes[0]
        return LDAPFilter_or(nodes)

    text = to_text(value)
    if "*" in text:
        # a backslash that does not start a \XX escape stands for itself
        return parseMaybeSubstring(attr, _loneBackslash.sub(r"\\5c", text))
    return LDAPFilter_equalityMatch(attr, text)


def _compileMapping(criteria):
    nodes = [_compileItem(k, v) for k, v in criteria.items()]
    if not nodes:
        raise ValueError("Empty filter mapping")
    if len(nodes) == 1:
        return nodes[0]
    return LDAPFilter_and(nodes)


def _compileSequence(seq):
    seq = list(seq)
    if not seq:
        raise ValueError("Empty filter sequence")

    op = _operator(seq[0])
    rest = seq[1:]
    if op in OPERATORS_AND:
        return LDAPFilter_and([_compile(x) for x in rest])
    if op in OPERATORS_OR:
        return LDAPFilter_or([_compile(x) for x in rest])
    if op in OPERATORS_NOT:
        if len(rest) == 1:
            return LDAPFilter_not(_compile(rest[0]))
        return LDAPFilter_not(_compileSequence(rest))
    if op == "present":
        if len(rest) != 1:
            raise ValueError("present takes exactly one attribute: %r" % (seq,))
        return LDAPFilter_present(to_text(rest[0]))
    if op is not None:
        if len(rest) != 2:
            raise ValueError("%s takes an attribute and a value: %r" % (op, seq))
        return COMPARISONS[op](to_text(rest[0]), rest[1])

    if len(seq) == 2 and _isAttributeName(seq[0]):
        return _compileItem(seq[0], seq[1])
    if len(seq) == 1:
        return _compile(seq[0])
    return LDAPFilter_and([_compile(x) for x in seq])


def _compile(criteria):
    if isinstance(criteria, LDAPFilter):
        return criteria
    if isinstance(criteria, bytes):
        criteria = criteria.decode("utf-8")
    if isinstance(criteria, str):
        criteria = criteria.strip()
        if not criteria:
            raise ValueError("Empty filter string")
        if not criteria.startswith("("):
            criteria = "(" + criteria + ")"
        return LDAPFilter_literal(criteria)
    if isinstance(criteria, Mapping):
        return _compileMapping(criteria)
    if isinstance(criteria, (list, tuple)):
        return _compileSequence(criteria)
    raise TypeError("Cannot build a filter from %r" % (criteria,))


def compileFilter(*criteria):
    """
    Build a filter node from Python criteria.

    >>> compileFilter({'givenName': 'Michael', 'sn': 'Granger'}).asText()
    '(&(givenName=Michael)(sn=Granger))'
    >>> compileFilter('uid', ['a', 'b']).asText()
    '(|(uid=a)(uid=b))'
    >>> compileFilter('not', ['and', ['sn', 'Granger'], ['sn', 'Smith']]).asText()
    '(!(&(sn=Granger)(sn=Smith)))'
    >>> compileFilter('cn', 'Mich*').asText()
    '(cn=Mich*)'
    """
    if not criteria:
        return LDAPFilterMatchAll
    return _compileSequence(criteria)


def conjoin(previous, node):
    """
    AND C{node} onto C{previous}. An existing AND is extended with a copy
    rather than nested.
    """
    if isinstance(previous, LDAPFilter_and):
        return LDAPFilter_and(previous.children + (node,))
    return LDAPFilter_and((previous, node))
