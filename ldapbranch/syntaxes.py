"""
Conversion of raw attribute values to Python objects, keyed by the
numeric OID of the attribute syntax (RFC4517).
"""

import datetime
import re

from twisted.python import log

from ldapbranch._encoder import to_unicode
from ldapbranch.distinguishedname import DistinguishedName

BOOLEAN = '1.3.6.1.4.1.1466.115.121.1.7'
INTEGER = '1.3.6.1.4.1.1466.115.121.1.27'
GENERALIZED_TIME = '1.3.6.1.4.1.1466.115.121.1.24'
UTC_TIME = '1.3.6.1.4.1.1466.115.121.1.53'
DISTINGUISHED_NAME = '1.3.6.1.4.1.1466.115.121.1.12'
DIRECTORY_STRING = '1.3.6.1.4.1.1466.115.121.1.15'
OCTET_STRING = '1.3.6.1.4.1.1466.115.121.1.40'
BINARY = '1.3.6.1.4.1.1466.115.121.1.5'
JPEG = '1.3.6.1.4.1.1466.115.121.1.28'
AUDIO = '1.3.6.1.4.1.1466.115.121.1.4'
FAX = '1.3.6.1.4.1.1466.115.121.1.23'
CERTIFICATE = '1.3.6.1.4.1.1466.115.121.1.8'
CERTIFICATE_LIST = '1.3.6.1.4.1.1466.115.121.1.9'
CERTIFICATE_PAIR = '1.3.6.1.4.1.1466.115.121.1.10'

_decoders = {}


def decoder(*oids):
    """Register the decorated function as the decoder for C{oids}."""

    def register(fn):
        for oid in oids:
            _decoders[oid] = fn
        return fn

    return register


def stripLength(oid):
    """
    Drop the optional length bound from a syntax OID:
    C{1.3.6.1.4.1.1466.115.121.1.15{32768}} becomes the bare OID.
    """
    if oid is None:
        return None
    oid = to_unicode(oid)
    brace = oid.find('{')
    if brace >= 0:
        oid = oid[:brace]
    return oid.strip()


@decoder(BOOLEAN)
def decodeBoolean(value):
    text = to_unicode(value).strip().upper()
    if text == 'TRUE':
        return True
    if text == 'FALSE':
        return False
    raise ValueError("Not a boolean: %r" % value)


@decoder(INTEGER)
def decodeInteger(value):
    return int(to_unicode(value).strip())


_generalizedTime = re.compile(
    r'^(?P<year>\d{4})(?P<month>\d{2})(?P<day>\d{2})(?P<hour>\d{2})'
    r'(?:(?P<minute>\d{2})(?:(?P<second>\d{2}))?)?'
    r'(?:[.,](?P<fraction>\d+))?'
    r'(?P<tz>Z|[+-]\d{2}(?:\d{2})?)?$')


def _timezone(tz):
    if tz is None or tz == 'Z':
        return datetime.timezone.utc
    sign = -1 if tz[0] == '-' else 1
    hours = int(tz[1:3])
    minutes = int(tz[3:5] or 0)
    return datetime.timezone(sign * datetime.timedelta(hours=hours, minutes=minutes))


@decoder(GENERALIZED_TIME)
def decodeGeneralizedTime(value):
    text = to_unicode(value).strip()
    m = _generalizedTime.match(text)
    if m is None:
        raise ValueError("Not a generalized time: %r" % value)
    fraction = m.group('fraction')
    microsecond = 0
    if fraction:
        microsecond = int((fraction + '000000')[:6])
    return datetime.datetime(
        int(m.group('year')),
        int(m.group('month')),
        int(m.group('day')),
        int(m.group('hour')),
        int(m.group('minute') or 0),
        int(m.group('second') or 0),
        microsecond,
        tzinfo=_timezone(m.group('tz')),
    )


@decoder(UTC_TIME)
def decodeUTCTime(value):
    text = to_unicode(value).strip()
    year = int(text[:2])
    century = '19' if year >= 50 else '20'
    return decodeGeneralizedTime(century + text)


@decoder(DISTINGUISHED_NAME)
def decodeDistinguishedName(value):
    return DistinguishedName(to_unicode(value))


@decoder(OCTET_STRING, BINARY, JPEG, AUDIO, FAX,
         CERTIFICATE, CERTIFICATE_LIST, CERTIFICATE_PAIR)
def decodeOctets(value):
    if isinstance(value, str):
        return value.encode('utf-8')
    return bytes(value)


def decodeText(value):
    if isinstance(value, bytes):
        try:
            return value.decode('utf-8')
        except UnicodeDecodeError:
            return value
    return to_unicode(value)


def decode(syntaxOID, value):
    """
    Decode one raw value according to C{syntaxOID}. Syntaxes without a
    registered decoder, and values their decoder rejects, come back as
    text.
    """
    fn = _decoders.get(stripLength(syntaxOID), decodeText)
    try:
        return fn(value)
    except ValueError as e:
        log.msg("Cannot decode %r with syntax %s: %s" % (value, syntaxOID, e))
        return decodeText(value)
