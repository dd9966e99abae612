"""
Per-attribute value codecs.

Most attribute values go to the directory exactly as they were declared.  A
few attributes need a specific wire encoding; Active Directory, for instance,
only accepts ``unicodePwd`` as the quoted password encoded as UTF-16-LE.  The
codec table maps such attribute names to the function that produces their
wire value.
"""

from collections.abc import Callable

#: Signature of a codec: takes the declared value and returns the value to send.
Codec = Callable[[str], str | bytes]


def unicode_password(value: str) -> str | bytes:
    """
    Encode ``value`` the way Active Directory expects ``unicodePwd``: wrapped in
    double quotes and encoded as UTF-16 little-endian, with no byte-order mark.

    If the value cannot be encoded (e.g. it contains a lone surrogate), the raw
    value is returned unchanged and the directory gets to reject it.

    Args:
        value: the cleartext password

    Returns:
        The encoded password, or ``value`` if it could not be encoded.

    """
    try:
        return f'"{value}"'.encode("utf-16-le")
    except UnicodeEncodeError:
        return value


#: Attribute name -> codec.  Names not in here are sent as declared.
CODECS: dict[str, Codec] = {
    "unicodePwd": unicode_password,
}


def register_codec(name: str, codec: Codec) -> None:
    """
    Use ``codec`` to encode every value of the attribute ``name``.  Attributes
    with a codec are also treated as sensitive and masked in log output.

    Args:
        name: the attribute name, as declared in the directory schema
        codec: the encoding function

    """
    CODECS[name] = codec


def is_sensitive(name: str) -> bool:
    """
    Return ``True`` if values of ``name`` should never appear in logs.
    """
    return name in CODECS


def encode_value(name: str, value: str) -> str | bytes:
    """
    Return the wire value for one value of the attribute ``name``.

    Args:
        name: the attribute name
        value: the declared value

    Returns:
        The codec's output for ``name``, or ``value`` itself when there is no
        codec registered for ``name``.

    """
    codec = CODECS.get(name)
    if codec is None:
        return value
    return codec(value)


def to_wire(name: str, value: str) -> bytes:
    """
    Like :py:func:`encode_value`, but always returns the ``bytes`` that
    python-ldap requires in modlists.  Values read back with undecodable bytes
    (see :py:func:`ldapreconciler.reconcilers.attributes_from_entry`) are
    turned back into the original bytes.
    """
    encoded = encode_value(name, value)
    if isinstance(encoded, bytes):
        return encoded
    return encoded.encode("utf-8", "surrogateescape")
