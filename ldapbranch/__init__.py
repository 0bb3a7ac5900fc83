"""Chainable LDAP queries and schema-aware entries"""
__version__ = "0.4.0"

__title__ = "ldapbranch"
__description__ = "Chainable LDAP queries and schema-aware entries"

__license__ = "MIT"
__author__ = "The ldapbranch developers"
__copyright__ = "Copyright (c) 2019-2026 {}".format(__author__)
