"""
Directory schema: parsing of RFC4512 definitions and resolution of
objectClass and attributeType inheritance.
"""

import re
import weakref

from twisted.python import log
from twisted.python.util import InsensitiveDict

from ldapbranch import syntaxes
from ldapbranch._encoder import to_unicode


class SchemaParseError(ValueError):
    """A schema definition could not be parsed."""

    def __init__(self, msg, text):
        ValueError.__init__(self)
        self.msg = msg
        self.text = text

    def __str__(self):
        return "Invalid schema definition: %s in %r" % (self.msg, self.text)


class SchemaCycleError(Exception):
    """The SUP references of the schema form a cycle."""

    def __init__(self, chain):
        Exception.__init__(self)
        self.chain = tuple(chain)

    def __str__(self):
        return "%s: %s" % (self.__doc__, " -> ".join(self.chain))


_token = re.compile(
    r"""\s*(?:
        (?P<punct>[()$])
      | '(?P<quoted>[^']*)'
      | (?P<word>[^\s()$']+)
    )""",
    re.VERBOSE,
)


def tokenize(text):
    """Split a definition into C{(kind, value)} pairs."""
    tokens = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        m = _token.match(text, pos)
        if m is None:
            raise SchemaParseError("unexpected character at %d" % pos, text)
        if m.group("punct") is not None:
            tokens.append((m.group("punct"), m.group("punct")))
        elif m.group("quoted") is not None:
            tokens.append(("q", m.group("quoted")))
        else:
            tokens.append(("w", m.group("word")))
        pos = m.end()
    return tokens


class _TokenStream:
    def __init__(self, text):
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0

    def _fail(self, msg):
        raise SchemaParseError(msg, self.text)

    def peek(self):
        if self.pos >= len(self.tokens):
            return (None, None)
        return self.tokens[self.pos]

    def next(self):
        token = self.peek()
        if token[0] is None:
            self._fail("unexpected end")
        self.pos += 1
        return token

    def expect(self, kind):
        token = self.next()
        if token[0] != kind:
            self._fail("expected %r, got %r" % (kind, token[1]))
        return token[1]

    def end(self):
        if self.pos != len(self.tokens):
            self._fail("trailing text %r" % (self.peek()[1],))

    def word(self):
        kind, value = self.next()
        if kind not in ("w", "q"):
            self._fail("expected a word, got %r" % value)
        return value

    oid = word
    noidlen = word

    def qdstring(self):
        return self.expect("q")

    def qdescrs(self):
        if self.peek()[0] == "(":
            self.next()
            names = []
            while self.peek()[0] != ")":
                names.append(self.word())
            self.next()
            if not names:
                self._fail("empty name list")
            return tuple(names)
        return (self.word(),)

    qdstrings = qdescrs

    def oids(self):
        if self.peek()[0] == "(":
            self.next()
            oids = []
            while self.peek()[0] != ")":
                if self.peek()[0] == "$":
                    self.next()
                    continue
                oids.append(self.word())
            self.next()
            return tuple(oids)
        return (self.word(),)

    def flag(self):
        return True


class SchemaDescription:
    """
    Common parsing for all RFC4512 descriptions. Subclasses list the
    keywords they understand in C{_keywords}, mapping each keyword to the
    attribute it sets and the token reader that produces its value.
    """

    _keywords = {}
    _defaults = {}

    oid = None
    name = None
    desc = None

    def __init__(self, text):
        for attr, value in self._defaults.items():
            setattr(self, attr, value)
        # storage for experimental terms ("X-SOMETHING")
        self.x_attrs = []

        if text is not None:
            self._parse(to_unicode(text))

    def _parse(self, text):
        stream = _TokenStream(text.strip())
        stream.expect("(")
        self.oid = stream.word()

        while stream.peek()[0] not in (")", None):
            keyword = stream.word()
            if keyword.startswith("X-"):
                self.x_attrs.append((keyword, stream.qdstrings()))
                continue
            try:
                attr, reader = self._keywords[keyword.upper()]
            except KeyError:
                raise SchemaParseError("unhandled keyword %r" % keyword, text)
            value = getattr(stream, reader)()
            if reader == "flag" and attr == "type":
                value = keyword.upper()
            setattr(self, attr, value)

        stream.expect(")")
        stream.end()

    @property
    def names(self):
        return self.name or ()

    def getName(self):
        """The first NAME, or the numeric OID when there is none."""
        if self.name:
            return self.name[0]
        return self.oid

    def x_attr(self, keyword, default=None):
        for key, value in self.x_attrs:
            if key.upper() == keyword.upper():
                return value
        return default

    def __repr__(self):
        return "<%s oid=%s name=%r>" % (self.__class__.__name__, self.oid, self.name)


class ObjectClassDescription(SchemaDescription):
    """
    ASN Syntax::

        ObjectClassDescription = LPAREN WSP
            numericoid                 ; object identifier
            [ SP "NAME" SP qdescrs ]   ; short names (descriptors)
            [ SP "DESC" SP qdstring ]  ; description
            [ SP "OBSOLETE" ]          ; not active
            [ SP "SUP" SP oids ]       ; superior object classes
            [ SP kind ]                ; kind of class
            [ SP "MUST" SP oids ]      ; attribute types
            [ SP "MAY" SP oids ]       ; attribute types
            extensions WSP RPAREN

        kind = "ABSTRACT" / "STRUCTURAL" / "AUXILIARY"

    C{must} and C{may} hold the effective attribute types once the
    description belongs to a L{Schema}: the class's own plus everything
    inherited through C{sup}. C{ownMust} and C{ownMay} keep what the
    definition itself declares.
    """

    _keywords = {
        "NAME": ("name", "qdescrs"),
        "DESC": ("desc", "qdstring"),
        "OBSOLETE": ("obsolete", "flag"),
        "SUP": ("sup", "oids"),
        "ABSTRACT": ("type", "flag"),
        "STRUCTURAL": ("type", "flag"),
        "AUXILIARY": ("type", "flag"),
        "MUST": ("ownMust", "oids"),
        "MAY": ("ownMay", "oids"),
    }
    _defaults = {
        "obsolete": False,
        "sup": (),
        "type": "STRUCTURAL",
        "ownMust": (),
        "ownMay": (),
    }

    def __init__(self, text):
        SchemaDescription.__init__(self, text)
        self.must = self.ownMust
        self.may = self.ownMay

    @property
    def structural(self):
        return self.type == "STRUCTURAL"

    @property
    def abstract(self):
        return self.type == "ABSTRACT"

    @property
    def auxiliary(self):
        return self.type == "AUXILIARY"


class AttributeTypeDescription(SchemaDescription):
    """
    ASN Syntax::

        AttributeTypeDescription = LPAREN WSP
            numericoid                    ; object identifier
            [ SP "NAME" SP qdescrs ]      ; short names (descriptors)
            [ SP "DESC" SP qdstring ]     ; description
            [ SP "OBSOLETE" ]             ; not active
            [ SP "SUP" SP oid ]           ; supertype
            [ SP "EQUALITY" SP oid ]      ; equality matching rule
            [ SP "ORDERING" SP oid ]      ; ordering matching rule
            [ SP "SUBSTR" SP oid ]        ; substrings matching rule
            [ SP "SYNTAX" SP noidlen ]    ; value syntax
            [ SP "SINGLE-VALUE" ]         ; single-value
            [ SP "COLLECTIVE" ]           ; collective
            [ SP "NO-USER-MODIFICATION" ] ; not user modifiable
            [ SP "USAGE" SP usage ]       ; usage
            extensions WSP RPAREN
    """

    _keywords = {
        "NAME": ("name", "qdescrs"),
        "DESC": ("desc", "qdstring"),
        "OBSOLETE": ("obsolete", "flag"),
        "SUP": ("sup", "oid"),
        "EQUALITY": ("equality", "oid"),
        "ORDERING": ("ordering", "oid"),
        "SUBSTR": ("substr", "oid"),
        "SYNTAX": ("syntax", "noidlen"),
        "SINGLE-VALUE": ("single_value", "flag"),
        "COLLECTIVE": ("collective", "flag"),
        "NO-USER-MODIFICATION": ("no_user_modification", "flag"),
        "USAGE": ("usage", "word"),
    }
    _defaults = {
        "obsolete": False,
        "sup": None,
        "equality": None,
        "ordering": None,
        "substr": None,
        "syntax": None,
        "single_value": False,
        "collective": False,
        "no_user_modification": False,
        "usage": "userApplications",
    }

    def __init__(self, text):
        SchemaDescription.__init__(self, text)
        self.syntaxOID = syntaxes.stripLength(self.syntax)

    @property
    def operational(self):
        return self.usage != "userApplications"

    def decode(self, rawValues):
        """
        Decode C{rawValues} through this type's syntax. Single-valued types
        unwrap to the first value.
        """
        values = tuple(syntaxes.decode(self.syntaxOID, v) for v in rawValues)
        if self.single_value:
            if not values:
                return None
            return values[0]
        return values


class SyntaxDescription(SchemaDescription):
    """
    ASN Syntax::

        SyntaxDescription = LPAREN WSP
            numericoid                 ; object identifier
            [ SP "DESC" SP qdstring ]  ; description
            extensions WSP RPAREN      ; extensions
    """

    _keywords = {
        "DESC": ("desc", "qdstring"),
    }

    @property
    def binary_transfer_required(self):
        return self.x_attr("X-BINARY-TRANSFER-REQUIRED", ("FALSE",))[0] == "TRUE"

    @property
    def human_readable(self):
        return self.x_attr("X-NOT-HUMAN-READABLE", ("FALSE",))[0] != "TRUE"


class MatchingRuleDescription(SchemaDescription):
    """
    ASN Syntax::

        MatchingRuleDescription = LPAREN WSP
            numericoid                 ; object identifier
            [ SP "NAME" SP qdescrs ]   ; short names (descriptors)
            [ SP "DESC" SP qdstring ]  ; description
            [ SP "OBSOLETE" ]          ; not active
            SP "SYNTAX" SP numericoid  ; assertion syntax
            extensions WSP RPAREN      ; extensions
    """

    _keywords = {
        "NAME": ("name", "qdescrs"),
        "DESC": ("desc", "qdstring"),
        "OBSOLETE": ("obsolete", "flag"),
        "SYNTAX": ("syntax", "noidlen"),
    }
    _defaults = {
        "obsolete": False,
        "syntax": None,
    }

    def _parse(self, text):
        SchemaDescription._parse(self, text)
        if self.syntax is None:
            raise SchemaParseError("matching rule without SYNTAX", text)


class MatchingRuleUseDescription(SchemaDescription):
    """
    ASN Syntax::

        MatchingRuleUseDescription = LPAREN WSP
            numericoid                 ; object identifier
            [ SP "NAME" SP qdescrs ]   ; short names (descriptors)
            [ SP "DESC" SP qdstring ]  ; description
            [ SP "OBSOLETE" ]          ; not active
            SP "APPLIES" SP oids       ; attribute types
            extensions WSP RPAREN      ; extensions
    """

    _keywords = {
        "NAME": ("name", "qdescrs"),
        "DESC": ("desc", "qdstring"),
        "OBSOLETE": ("obsolete", "flag"),
        "APPLIES": ("applies", "oids"),
    }
    _defaults = {
        "obsolete": False,
        "applies": (),
    }


def _uniq(names, exclude=()):
    seen = {x.lower() for x in exclude}
    r = []
    for name in names:
        if name.lower() not in seen:
            seen.add(name.lower())
            r.append(name)
    return tuple(r)


class Schema:
    """
    A parsed subschema.

    C{rawSchema} is a mapping shaped like the subschema subentry:
    C{objectClasses}, C{attributeTypes}, C{ldapSyntaxes},
    C{matchingRules} and C{matchingRuleUse}, each a list of definition
    strings. Every description is reachable by numeric OID and by each of
    its names, case-insensitively.
    """

    sections = (
        ("objectClasses", ObjectClassDescription),
        ("attributeTypes", AttributeTypeDescription),
        ("ldapSyntaxes", SyntaxDescription),
        ("matchingRules", MatchingRuleDescription),
        ("matchingRuleUse", MatchingRuleUseDescription),
    )

    _cache = weakref.WeakKeyDictionary()

    def __init__(self, rawSchema):
        raw = InsensitiveDict(dict(rawSchema or {}))
        self._ordered = {}
        for section, cls in self.sections:
            lookup = InsensitiveDict()
            ordered = []
            for text in raw.get(section, None) or ():
                description = cls(text)
                ordered.append(description)
                lookup[description.oid] = description
                for name in description.names:
                    lookup[name] = description
            setattr(self, section, lookup)
            self._ordered[section] = ordered

        self._resolveObjectClasses()
        self._resolveAttributeTypes()

    @classmethod
    def forDirectory(cls, directory, reload=False):
        """
        Return the schema of C{directory}, parsing C{directory.schema()}
        the first time it is asked for.
        """
        schema = cls._cache.get(directory)
        if schema is None or reload:
            schema = cls(directory.schema())
            cls._cache[directory] = schema
        return schema

    def _resolveObjectClasses(self):
        resolved = set()
        for oc in self._ordered["objectClasses"]:
            self._resolveObjectClass(oc, [], resolved)

    def _resolveObjectClass(self, oc, chain, resolved):
        if oc.oid in resolved:
            return
        if oc.oid in [x.oid for x in chain]:
            raise SchemaCycleError([x.getName() for x in chain] + [oc.getName()])
        chain.append(oc)

        must = list(oc.ownMust)
        may = list(oc.ownMay)
        for name in oc.sup:
            sup = self.objectClasses.get(name, None)
            if sup is None:
                log.msg("objectClass %s has unknown superior %s" % (oc.getName(), name))
                continue
            self._resolveObjectClass(sup, chain, resolved)
            must.extend(sup.must)
            may.extend(sup.may)
        oc.must = _uniq(must)
        oc.may = _uniq(may, exclude=oc.must)

        chain.pop()
        resolved.add(oc.oid)

    def _resolveAttributeTypes(self):
        resolved = set()
        for at in self._ordered["attributeTypes"]:
            self._resolveAttributeType(at, [], resolved)

    def _resolveAttributeType(self, at, chain, resolved):
        if at.oid in resolved:
            return
        if at.oid in [x.oid for x in chain]:
            raise SchemaCycleError([x.getName() for x in chain] + [at.getName()])
        chain.append(at)

        if at.sup is not None:
            sup = self.attributeTypes.get(at.sup, None)
            if sup is None:
                log.msg("attributeType %s has unknown supertype %s" % (at.getName(), at.sup))
            else:
                self._resolveAttributeType(sup, chain, resolved)
                if at.syntaxOID is None:
                    at.syntaxOID = sup.syntaxOID
                if at.equality is None:
                    at.equality = sup.equality

        chain.pop()
        resolved.add(at.oid)

    def allObjectClasses(self):
        return list(self._ordered["objectClasses"])

    def allAttributeTypes(self):
        return list(self._ordered["attributeTypes"])

    def objectClass(self, name):
        return self.objectClasses.get(to_unicode(name), None)

    def attributeType(self, name):
        return self.attributeTypes.get(to_unicode(name), None)

    def isAttributeName(self, name):
        return self.attributeType(name) is not None

    def decodeValue(self, attr, raw):
        """
        Decode a single raw value of C{attr}. Types the schema does not know
        decode as text.
        """
        at = self.attributeType(attr)
        if at is None:
            return syntaxes.decodeText(raw)
        return syntaxes.decode(at.syntaxOID, raw)

    def decodeValues(self, attr, raws):
        """
        Decode every raw value of C{attr}; a scalar for single-valued types,
        a tuple otherwise.
        """
        at = self.attributeType(attr)
        if at is None:
            return tuple(syntaxes.decodeText(x) for x in raws)
        return at.decode(raws)

    def _knownObjectClass(self, name):
        oc = self.objectClass(name)
        if oc is None:
            log.msg("Unknown objectClass %r" % (name,))
        return oc

    def mustAttributes(self, objectClass):
        """
        Effective MUST attribute names of C{objectClass}; empty for a class
        the schema does not know.
        """
        oc = self._knownObjectClass(objectClass)
        if oc is None:
            return ()
        return oc.must

    def mayAttributes(self, objectClass):
        """Effective MAY attribute names of C{objectClass}."""
        oc = self._knownObjectClass(objectClass)
        if oc is None:
            return ()
        return oc.may
