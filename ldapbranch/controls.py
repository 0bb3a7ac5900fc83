"""
Search controls that a directory can register to have mixed into every
Branchset it serves.

A control is a class listed before Branchset in the MRO; it adds its own
modifiers and extends getClientControls/getServerControls. Controls are
sent as C{(OID, criticality, value)} tuples.
"""

from zope.interface import implementer

from ldapbranch.interfaces import IControl


@implementer(IControl)
class Control:
    OID = None

    def getClientControls(self):
        return super().getClientControls()

    def getServerControls(self):
        return super().getServerControls()


class ManageDsaITControl(Control):
    """
    RFC3296 ManageDsaIT: referral and alias objects are returned as
    ordinary entries instead of being followed.
    """

    OID = "2.16.840.1.113730.3.4.2"

    def manageDsaIT(self, enabled=True):
        return self.clone(manageDsaIT=bool(enabled))

    def getServerControls(self):
        controls = super().getServerControls()
        if self.options.get("manageDsaIT"):
            controls.append((self.OID, True, None))
        return controls
