"""
Attribute diff engines.

Two engines turn an old and a new :py:class:`~ldapreconciler.attributes.AttributeSet`
into the directives of a single LDAP modify request:

* :py:func:`compute_deltas` is for objects whose attributes we own outright.
  An attribute that keeps some values while others come and go is rewritten
  with a ``Replace``, because ``Add`` only makes sense for an attribute that
  did not exist before, and a bare ``Delete`` only for one that does not exist
  afterwards.
* :py:func:`compute_attribute_deltas` is for attributes we only own some values
  of.  It never issues ``Replace``, since that would clobber values managed by
  somebody else; it adds and deletes exactly the values that changed.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, ClassVar

import structlog

from ldapreconciler import ldap

from .attributes import AttributeSet
from .codecs import to_wire
from .policy import ALLOW_ALL, FilterPolicy
from .typing import AddModlist, ModifyModlist

logger = structlog.get_logger("ldapreconciler")


@dataclass(frozen=True)
class Directive:
    """
    One change to one attribute of an LDAP entry.
    """

    #: The python-ldap modification type for this directive.
    modtype: ClassVar[int]

    #: The attribute name
    name: str
    #: The values to add, replace with, or delete
    values: tuple[str, ...] = ()

    def to_modlist_entry(self) -> tuple[int, str, list[bytes] | None]:
        return (
            self.modtype,
            self.name,
            [to_wire(self.name, value) for value in self.values],
        )


@dataclass(frozen=True)
class Add(Directive):
    modtype: ClassVar[int] = ldap.MOD_ADD  # type: ignore[attr-defined]


@dataclass(frozen=True)
class Replace(Directive):
    modtype: ClassVar[int] = ldap.MOD_REPLACE  # type: ignore[attr-defined]


@dataclass(frozen=True)
class Delete(Directive):
    """
    Delete the given values of an attribute, or the whole attribute if no
    values are given.
    """

    modtype: ClassVar[int] = ldap.MOD_DELETE  # type: ignore[attr-defined]

    def to_modlist_entry(self) -> tuple[int, str, list[bytes] | None]:
        if not self.values:
            return (self.modtype, self.name, None)
        return super().to_modlist_entry()


class Modlist:
    """
    Helpers for turning attributes and directives into python-ldap modlists.
    """

    @staticmethod
    def from_directives(directives: Iterable[Directive]) -> ModifyModlist:
        """
        Convert ``directives`` into a modlist suitable for ``modify_s``, keeping
        their order.
        """
        return [directive.to_modlist_entry() for directive in directives]

    @staticmethod
    def add(data: dict[str, list[str]]) -> AddModlist:
        """
        Convert a ``{name: [values]}`` dict into a modlist suitable for
        ``add_s``.  Attributes with no values are dropped.
        """
        return [
            (name, [to_wire(name, value) for value in values])
            for name, values in data.items()
            if values
        ]


def compute_deltas(
    old: AttributeSet,
    new: AttributeSet,
    policy: FilterPolicy = ALLOW_ALL,
    logger: Any = logger,
) -> list[Directive]:
    """
    Compute the directives that turn a fully owned ``old`` attribute set into
    ``new``.

    Attribute names are sorted into removed, added and kept according to the
    values that changed under them.  A name that lost all its values is
    deleted, a name that had no values before is added, and a name that both
    kept or gained and lost values is replaced with its full new value list.
    Names the ``policy`` skips are left out.

    Args:
        old: the attributes we recorded last time
        new: the attributes we want

    Keyword Args:
        policy: which attribute names to consider
        logger: where to log the computed directives

    Returns:
        ``Delete`` directives, then ``Add``, then ``Replace``; each group sorted
        by attribute name.  Empty when nothing changed.

    """
    removed = set((old - new).names())
    added = set((new - old).names())
    kept = set((new & old).names())
    changed: set[str] = set()

    directives: list[Directive] = []
    for name in sorted(removed):
        if policy.should_skip(name):
            continue
        if name in added or name in kept:
            changed.add(name)
            continue
        # every value under this name is gone
        logger.debug("ldapreconciler.deltas.delete", attribute=name)
        directives.append(Delete(name))

    for name in sorted(added):
        if policy.should_skip(name):
            continue
        if name in removed or name in kept:
            changed.add(name)
            continue
        values = tuple(new.values_for(name))
        logger.debug("ldapreconciler.deltas.add", attribute=name, count=len(values))
        directives.append(Add(name, values))

    for name in sorted(changed):
        values = tuple(new.values_for(name))
        logger.debug("ldapreconciler.deltas.replace", attribute=name, count=len(values))
        directives.append(Replace(name, values))
    return directives


def compute_attribute_deltas(
    old: AttributeSet,
    new: AttributeSet,
    logger: Any = logger,
) -> list[Directive]:
    """
    Compute the directives that turn a partially owned ``old`` attribute set
    into ``new``, touching only the values that changed.

    Args:
        old: the values we owned before
        new: the values we want to own

    Keyword Args:
        logger: where to log the computed directives

    Returns:
        A ``Delete`` per attribute name that lost owned values, followed by an
        ``Add`` per name that gained some; each carries exactly those values.

    """
    directives: list[Directive] = []
    for name, values in sorted((old - new).grouped().items()):
        logger.debug("ldapreconciler.attribute-deltas.delete", attribute=name, count=len(values))
        directives.append(Delete(name, tuple(values)))
    for name, values in sorted((new - old).grouped().items()):
        logger.debug("ldapreconciler.attribute-deltas.add", attribute=name, count=len(values))
        directives.append(Add(name, tuple(values)))
    return directives
