import configparser
import os.path

from ldapbranch.distinguishedname import DistinguishedName


class MissingBaseDNError(Exception):
    """Configuration must specify a base DN"""

    def __str__(self):
        return self.__doc__


class LDAPConfig:
    """
    Settings shared by Branches and capability registries. Values passed
    in explicitly take precedence over the configuration files.
    """

    baseDN = None
    includeOperational = None

    def __init__(self, baseDN=None, includeOperational=None):
        if baseDN is not None:
            self.baseDN = DistinguishedName(baseDN)
        if includeOperational is not None:
            self.includeOperational = bool(includeOperational)

    def getBaseDN(self):
        if self.baseDN is not None:
            return self.baseDN

        cfg = loadConfig()
        try:
            return DistinguishedName(cfg.get("ldap", "base"))
        except (configparser.NoOptionError, configparser.NoSectionError):
            raise MissingBaseDNError()

    def getIncludeOperational(self):
        if self.includeOperational is not None:
            return self.includeOperational

        cfg = loadConfig()
        return cfg.getboolean("entries", "include-operational")

    def copy(self, **kw):
        if "baseDN" not in kw:
            kw["baseDN"] = self.baseDN
        if "includeOperational" not in kw:
            kw["includeOperational"] = self.includeOperational
        return self.__class__(**kw)


DEFAULTS = {
    "entries": {
        "include-operational": "no",
    },
}

CONFIG_FILES = [
    "/etc/ldapbranch/global.cfg",
    os.path.expanduser("~/.ldapbranch/global.cfg"),
]

__config = None


def loadConfig(configFiles=None, reload=False):
    """
    Load configuration file.
    """
    global __config
    if __config is None or reload:
        x = configparser.ConfigParser()

        for section, options in DEFAULTS.items():
            x.add_section(section)
            for option, value in options.items():
                x.set(section, option, value)

        if configFiles is None:
            configFiles = CONFIG_FILES
        x.read(configFiles)
        __config = x
    return __config
