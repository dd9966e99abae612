"""
The attribute set model.

A managed entry's attributes are represented as a set of single
``(name, value)`` pairs, one pair per value of a possibly multi-valued
attribute.  Comparing two such sets with ordinary set algebra tells us which
individual values appeared or disappeared, which is what the diff engines in
:py:mod:`ldapreconciler.diff` are built on.
"""

import json
import zlib
from collections.abc import Iterable, Iterator, Mapping
from typing import NamedTuple

from .codecs import is_sensitive

#: Smallest signed 32-bit integer; its negation does not fit in 32 bits.
_INT32_MIN = -(2**31)


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def attribute_hash(attr: "AttributeValue") -> int:
    """
    Compute the set hash of a single attribute value.

    The hash is the CRC-32 of ``map {"name" := "value";}``, read as a signed
    32-bit integer and folded into the non-negative range.  It depends only on
    the name and value, so it is stable across processes.

    Args:
        attr: the attribute value to hash

    Returns:
        An integer between ``0`` and ``2**31 - 1``.

    """
    text = f"map {{{_quote(attr.name)} := {_quote(attr.value)};}}"
    h = zlib.crc32(text.encode("utf-8", "surrogatepass"))
    if h >= 2**31:
        h -= 2**32
    if h >= 0:
        return h
    if h != _INT32_MIN:
        return -h
    # -(-2**31) overflows a 32-bit integer, so this one collides with 0
    return 0


class AttributeValue(NamedTuple):
    """
    One value of one attribute.
    """

    #: The attribute name, e.g. ``mail``
    name: str
    #: A single value of that attribute
    value: str

    def __hash__(self) -> int:
        return attribute_hash(self)

    def __str__(self) -> str:
        return f"{self.name}={self.value}"


class AttributeSet:
    """
    A set of :py:class:`AttributeValue` with value-based equality.

    Iteration order is insertion order, so values gathered from a set come out
    in the order they were declared.  Only membership matters for equality.

    Args:
        values: the initial members; duplicates collapse into one.

    """

    def __init__(self, values: Iterable[AttributeValue] = ()) -> None:
        self._values: dict[AttributeValue, None] = {}
        for value in values:
            self.add(value)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Iterable[str]]) -> "AttributeSet":
        """
        Build a set from a ``{name: [values]}`` mapping, the shape python-ldap
        and most callers use.
        """
        return cls(
            AttributeValue(name, value) for name, values in data.items()
            for value in values
        )

    @classmethod
    def from_pairs(cls, pairs: Iterable[Mapping[str, str]]) -> "AttributeSet":
        """
        Build a set from a list of single-key maps, e.g.
        ``[{"mail": "a@x"}, {"title": "eng"}, {"title": "lead"}]``.  This is the
        shape declarative configuration uses, since it lets one name appear more
        than once.

        Raises:
            ValueError: a map does not have exactly one key

        """
        values = []
        for pair in pairs:
            if len(pair) != 1:
                msg = f"Each attribute map must hold exactly one entry, got {dict(pair)!r}"
                raise ValueError(msg)
            ((name, value),) = pair.items()
            values.append(AttributeValue(name, value))
        return cls(values)

    def add(self, value: AttributeValue) -> None:
        self._values[value] = None

    def names(self) -> list[str]:
        """
        Return the distinct attribute names in this set, in first-seen order.
        """
        return list(dict.fromkeys(v.name for v in self._values))

    def values_for(self, name: str) -> list[str]:
        """
        Return every value stored under ``name``.
        """
        return [v.value for v in self._values if v.name == name]

    def grouped(self) -> dict[str, list[str]]:
        """
        Return the set as a ``{name: [values]}`` dict.
        """
        data: dict[str, list[str]] = {}
        for v in self._values:
            data.setdefault(v.name, []).append(v.value)
        return data

    def as_pairs(self) -> list[dict[str, str]]:
        """
        Return the set as a list of single-key maps; the inverse of
        :py:meth:`from_pairs`.
        """
        return [{v.name: v.value} for v in self._values]

    def union(self, other: "AttributeSet") -> "AttributeSet":
        return AttributeSet([*self._values, *other._values])

    def intersection(self, other: "AttributeSet") -> "AttributeSet":
        return AttributeSet(v for v in self._values if v in other._values)

    def difference(self, other: "AttributeSet") -> "AttributeSet":
        return AttributeSet(v for v in self._values if v not in other._values)

    __or__ = union
    __and__ = intersection
    __sub__ = difference

    def __contains__(self, value: object) -> bool:
        # plain (name, value) tuples compare equal to members but hash differently
        if isinstance(value, tuple) and not isinstance(value, AttributeValue):
            if len(value) != 2:
                return False
            value = AttributeValue(*value)
        return value in self._values

    def __iter__(self) -> Iterator[AttributeValue]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __bool__(self) -> bool:
        return bool(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AttributeSet):
            return NotImplemented
        return self._values.keys() == other._values.keys()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"AttributeSet({list(self._values)!r})"


def format_attributes(prefix: str, attributes: AttributeSet) -> str:
    """
    Render ``attributes`` one per line for debug logging.  Values of sensitive
    attributes (see :py:func:`ldapreconciler.codecs.is_sensitive`) are masked.
    """
    lines = [f"{prefix}: {{"]
    for attr in attributes:
        value = "*CENSORED*" if is_sensitive(attr.name) else attr.value
        lines.append(f"    {_quote(attr.name)}: {_quote(value)}")
    lines.append("}")
    return "\n".join(lines)
