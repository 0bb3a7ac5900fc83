"""
    Encoding / decoding utilities
"""


def to_unicode(value):
    """
    Converts value to text:

    * Decodes value from utf-8 if it is a byte string
    * Uses value`s getText method if it has one
    * Otherwise just returns the same value
    """
    if isinstance(value, bytes):
        return value.decode("utf-8")
    if hasattr(value, "getText"):
        return value.getText()
    return value


def to_text(value):
    """
    Converts an arbitrary attribute or assertion value to text, the way
    it is written on the wire: booleans as TRUE/FALSE, numbers in
    decimal, everything else via to_unicode or str().
    """
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    value = to_unicode(value)
    if not isinstance(value, str):
        value = str(value)
    return value


def as_list(value):
    """
    Wrap a scalar into a list; lists, tuples, sets and frozensets are
    returned as a new list in their iteration order.
    """
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]
