from collections.abc import Iterable
from dataclasses import dataclass

#: Object classes are handled on their own and never as ordinary attributes.
OBJECTCLASS_ATTRIBUTE = "objectClass"


@dataclass(frozen=True)
class FilterPolicy:
    """
    Decides which attribute names take part in reconciliation.

    ``skip`` is a deny list: names in it are never touched.  ``select`` is an
    allow list: when it is non-empty, only names in it are touched.  A name in
    both lists is skipped.
    """

    #: Attribute names that are never read back or modified.
    skip: frozenset[str] = frozenset()
    #: If non-empty, the only attribute names that are read back or modified.
    select: frozenset[str] = frozenset()

    @classmethod
    def from_lists(
        cls,
        skip: Iterable[str] | None = None,
        select: Iterable[str] | None = None,
    ) -> "FilterPolicy":
        return cls(skip=frozenset(skip or ()), select=frozenset(select or ()))

    @classmethod
    def for_object(
        cls,
        skip: Iterable[str] | None = None,
        select: Iterable[str] | None = None,
    ) -> "FilterPolicy":
        """
        Build the policy for a fully owned object.  ``objectClass`` is always
        added to the deny list.
        """
        return cls.from_lists([OBJECTCLASS_ATTRIBUTE, *(skip or ())], select)

    def should_skip(self, name: str) -> bool:
        """
        Return ``True`` if the attribute ``name`` must be left alone.
        """
        if self.select and name not in self.select:
            return True
        return name in self.skip


#: A policy that lets every attribute through.
ALLOW_ALL = FilterPolicy()
