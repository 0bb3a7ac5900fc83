from zope.interface import Attribute, Interface


class DNNotPresentError(Exception):
    """The requested DN cannot be found by the directory."""

    def __init__(self, dn=None):
        Exception.__init__(self)
        self.dn = dn

    def __str__(self):
        if self.dn is None:
            return self.__doc__
        return "%s %s" % (self.__doc__, self.dn)


class IDirectory(Interface):
    """
    A directory that Branches and Branchsets read from and write to.

    DNs are passed as text. A raw entry is a mapping of attribute type to
    list of values, with the entry's DN under the C{"dn"} key.
    """

    baseDN = Attribute("DistinguishedName of the directory's naming context.")

    def search(base, scope, filterText, params):
        """
        Search below C{base}.

        @param scope: one of the LDAP_SCOPE_* integers.

        @param filterText: RFC4515 filter text.

        @param params: dict with keys C{limit} (0 for unlimited),
        C{selectattrs} (list of attribute types, empty for all),
        C{timeout} (seconds, 0 for none), C{clientControls} and
        C{serverControls}.

        @return: an iterable of raw entries.
        """

    def getEntry(dn):
        """
        Return the raw entry at C{dn}.

        @raise DNNotPresentError: when there is no such entry.
        """

    def getExtendedEntry(dn):
        """
        Like getEntry, but including operational attributes.
        """

    def modify(dn, changes):
        """
        Replace the values of the attributes in C{changes}, a mapping of
        attribute type to list of values. An empty list removes the
        attribute.
        """

    def create(dn, attributes):
        """Add a new entry at C{dn}."""

    def delete(dn, attributes=None):
        """
        Delete the entry at C{dn}, or, when C{attributes} is given, only
        those attributes of it.
        """

    def move(dn, newRDN, attributes):
        """
        Rename the entry at C{dn} to C{newRDN} under the same parent,
        replacing C{attributes} on the way.
        """

    def copy(dn, newDN, attributes):
        """
        Create an entry at C{newDN} from the entry at C{dn}, with
        C{attributes} replacing the copied ones.
        """

    def schema():
        """
        Return the raw subschema: a mapping with the keys
        C{objectClasses}, C{attributeTypes}, C{ldapSyntaxes},
        C{matchingRules} and C{matchingRuleUse}.
        """

    def registeredControls():
        """Return the control classes to mix into every Branchset."""


class IControl(Interface):
    """
    A Branchset mixin that adds methods to the Branchset and contributes
    controls to each search it issues.
    """

    OID = Attribute("Numeric OID of the control.")

    def getClientControls():
        """Return a list of client controls to send with a search."""

    def getServerControls():
        """Return a list of server controls to send with a search."""
