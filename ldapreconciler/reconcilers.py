# mypy: disable-error-code="attr-defined"
"""
Create, read, update and delete managed LDAP entries.

There are two ownership modes:

* :py:class:`ObjectReconciler` owns a whole entry: its object classes and every
  value of every attribute its :py:class:`~ldapreconciler.policy.FilterPolicy`
  lets through.
* :py:class:`ObjectAttributesReconciler` owns only some values of some
  attributes of an entry that is managed elsewhere.  Values it does not own
  are never touched.

:py:class:`ObjectLookup` finds a single entry by attribute values, read-only.

Reads never treat a missing entry as an error: they return a
:py:class:`ReadResult` with ``exists=False`` so that the caller can drop its
recorded state.
"""

from collections.abc import Iterable, Mapping
from typing import Any, NamedTuple

import structlog
from ldap_filter import Filter

from ldapreconciler import ldap

from .attributes import AttributeSet, AttributeValue, format_attributes
from .diff import Add, Directive, Replace, compute_attribute_deltas, compute_deltas
from .exceptions import EntryNotFound, MultipleEntriesReturned, ReconcilerError
from .managers import DirectoryClient, normalize_search_depth
from .policy import ALLOW_ALL, OBJECTCLASS_ATTRIBUTE, FilterPolicy

logger = structlog.get_logger("ldapreconciler")

#: Attributes that may hold the DN when a server leaves the entry DN empty.
DN_ATTRIBUTES = ("dn", "DN", "distinguished_name", "distinguishedName")


class ReadResult(NamedTuple):
    """
    What a read found in the directory.
    """

    #: The managed attributes that exist in the directory
    attributes: AttributeSet
    #: ``False`` if the entry (or, for partial ownership, every owned value) is gone
    exists: bool
    #: The entry's object classes; always empty for partial ownership
    object_classes: tuple[str, ...] = ()


class LookupResult(NamedTuple):
    #: The DN of the entry found
    dn: str
    #: Its attributes, filtered by the lookup's policy
    attributes: AttributeSet


def _decode(values: Iterable[bytes]) -> list[str]:
    return [value.decode("utf-8", "surrogateescape") for value in values]


def is_rdn(dn: str, name: str, values: list[str]) -> bool:
    """
    Return ``True`` if ``name`` is the entry's own RDN: it has exactly one value
    and ``name=value`` is a literal prefix of ``dn``.
    """
    return len(values) == 1 and dn.startswith(f"{name}={values[0]}")


def attributes_from_entry(
    dn: str,
    attrs: Mapping[str, list[bytes]],
    policy: FilterPolicy = ALLOW_ALL,
    skip_rdn: bool = True,
    logger: Any = logger,
) -> AttributeSet:
    """
    Build an :py:class:`~ldapreconciler.attributes.AttributeSet` from a search
    result's attributes.

    Args:
        dn: the entry's DN
        attrs: the ``{name: [values]}`` dict python-ldap returned

    Keyword Args:
        policy: attributes the policy skips are left out
        skip_rdn: if ``True``, leave out the attribute that is the entry's RDN
        logger: where to log what was skipped

    Returns:
        One member per attribute value.

    """
    result = AttributeSet()
    for name, raw_values in attrs.items():
        if policy.should_skip(name):
            logger.debug("ldapreconciler.read.skip-attribute", dn=dn, attribute=name)
            continue
        values = _decode(raw_values)
        if skip_rdn and is_rdn(dn, name, values):
            logger.debug("ldapreconciler.read.skip-rdn", dn=dn, attribute=name)
            continue
        for value in values:
            result.add(AttributeValue(name, value))
    return result


class BaseReconciler:
    """
    Shared plumbing for the reconcilers: existence checks and sending a
    computed list of directives as one modify request.

    Args:
        client: the directory client to use

    Keyword Args:
        logger: the structlog logger to use

    """

    def __init__(self, client: DirectoryClient, logger: Any = logger) -> None:
        self.client = client
        self.logger = logger

    def exists(self, dn: str) -> bool:
        """
        Check whether ``dn`` exists.  No attributes are fetched.

        Raises:
            ldap.LDAPError: anything but "no such object"

        """
        try:
            self.client.search(dn, ldap.SCOPE_BASE, attributes=["1.1"])
        except ldap.NO_SUCH_OBJECT:
            self.logger.warning("ldapreconciler.exists.not-found", dn=dn)
            return False
        self.logger.debug("ldapreconciler.exists", dn=dn)
        return True

    def _modify(self, dn: str, directives: list[Directive], event: str) -> None:
        if not directives:
            self.logger.warning(f"{event}.no-changes", dn=dn)
            return
        try:
            self.client.modify(dn, directives)
        except ldap.LDAPError as e:
            self.logger.error(f"{event}.failed", dn=dn, error=str(e))
            raise
        self.logger.info(f"{event}.success", dn=dn, changes=len(directives))


class ObjectReconciler(BaseReconciler):
    """
    Reconciles entries that we own completely.

    ``objectClass`` is managed through the ``object_classes`` arguments and is
    always excluded from the ordinary attributes, whatever policy is given.
    """

    def _policy(self, policy: FilterPolicy | None) -> FilterPolicy:
        if policy is None:
            return FilterPolicy.for_object()
        return FilterPolicy.for_object(policy.skip, policy.select)

    def create(
        self,
        dn: str,
        object_classes: Iterable[str],
        attributes: AttributeSet,
        policy: FilterPolicy | None = None,
    ) -> ReadResult:
        """
        Create ``dn`` with ``object_classes`` and every value in ``attributes``
        that ``policy`` lets through, then read it back.

        Raises:
            ldap.LDAPError: the directory rejected the add

        Returns:
            What the directory stored, as :py:meth:`read` sees it.

        """
        policy = self._policy(policy)
        data: dict[str, list[str]] = {OBJECTCLASS_ATTRIBUTE: list(object_classes)}
        for name, values in attributes.grouped().items():
            if policy.should_skip(name):
                self.logger.debug(
                    "ldapreconciler.object.create.skip-attribute", dn=dn, attribute=name
                )
                continue
            data[name] = values
        self.client.add(dn, data)
        self.logger.info("ldapreconciler.object.create.success", dn=dn)
        return self.read(dn, policy)

    def read(self, dn: str, policy: FilterPolicy | None = None) -> ReadResult:
        """
        Read ``dn`` back from the directory.

        The entry's RDN attribute and the attributes ``policy`` skips are left
        out of the result.

        Raises:
            MultipleEntriesReturned: the base search returned more than one entry

        """
        policy = self._policy(policy)
        try:
            entries = self.client.search(dn, ldap.SCOPE_BASE)
        except ldap.NO_SUCH_OBJECT:
            self.logger.warning("ldapreconciler.object.read.not-found", dn=dn)
            return ReadResult(AttributeSet(), exists=False)
        if not entries:
            self.logger.warning("ldapreconciler.object.read.not-found", dn=dn)
            return ReadResult(AttributeSet(), exists=False)
        if len(entries) > 1:
            msg = f"Base search for '{dn}' returned {len(entries)} entries"
            raise MultipleEntriesReturned(msg)
        # Servers differ on how they spell objectClass
        object_classes: list[str] = []
        attrs: dict[str, list[bytes]] = {}
        for name, values in entries[0][1].items():
            if name.lower() == OBJECTCLASS_ATTRIBUTE.lower():
                object_classes = _decode(values)
            else:
                attrs[name] = values
        attributes = attributes_from_entry(dn, attrs, policy, logger=self.logger)
        self.logger.debug(
            "ldapreconciler.object.read.success", dn=dn, count=len(attributes)
        )
        return ReadResult(attributes, exists=True, object_classes=tuple(object_classes))

    def import_entry(self, dn: str, policy: FilterPolicy | None = None) -> ReadResult:
        """
        Read an existing entry we are about to take ownership of.

        Raises:
            EntryNotFound: ``dn`` does not exist

        """
        result = self.read(dn, policy)
        if not result.exists:
            msg = f"Cannot import '{dn}': no such object"
            raise EntryNotFound(msg)
        return result

    def update(  # noqa: PLR0913
        self,
        dn: str,
        old: AttributeSet,
        new: AttributeSet,
        policy: FilterPolicy | None = None,
        old_object_classes: Iterable[str] | None = None,
        new_object_classes: Iterable[str] | None = None,
    ) -> ReadResult:
        """
        Bring ``dn`` from ``old`` to ``new`` in a single modify request, then
        read it back.

        If both object class lists are given and differ, ``objectClass`` is
        replaced with ``new_object_classes``.

        Raises:
            ldap.LDAPError: the directory rejected the modify; nothing was applied

        """
        policy = self._policy(policy)
        self.logger.debug(
            "ldapreconciler.object.update.start",
            dn=dn,
            old=format_attributes("old attributes", old),
            new=format_attributes("new attributes", new),
        )
        directives: list[Directive] = []
        if old_object_classes is not None and new_object_classes is not None:
            classes = list(new_object_classes)
            if set(old_object_classes) != set(classes):
                self.logger.debug(
                    "ldapreconciler.object.update.object-classes", dn=dn, classes=classes
                )
                directives.append(Replace(OBJECTCLASS_ATTRIBUTE, tuple(classes)))
        directives.extend(compute_deltas(old, new, policy, logger=self.logger))
        self._modify(dn, directives, "ldapreconciler.object.update")
        return self.read(dn, policy)

    def delete(self, dn: str) -> None:
        """
        Delete ``dn``.

        Raises:
            ldap.LDAPError: the directory rejected the delete

        """
        try:
            self.client.delete(dn)
        except ldap.LDAPError as e:
            self.logger.error("ldapreconciler.object.delete.failed", dn=dn, error=str(e))
            raise
        self.logger.info("ldapreconciler.object.delete.success", dn=dn)


class ObjectAttributesReconciler(BaseReconciler):
    """
    Reconciles some values of some attributes of an entry we do not own.

    Only the values we declared are ever added or removed; any other value of
    the same attribute, added by other means, is left alone.  No
    :py:class:`~ldapreconciler.policy.FilterPolicy` applies here: the owned
    values are the filter.
    """

    def create(self, dn: str, attributes: AttributeSet) -> ReadResult:
        """
        Add every value in ``attributes`` to ``dn``, then read them back.

        Raises:
            ldap.LDAPError: the directory rejected the modify, e.g. because ``dn``
                does not exist or a value is already present

        """
        directives: list[Directive] = [
            Add(name, tuple(values)) for name, values in attributes.grouped().items()
        ]
        self._modify(dn, directives, "ldapreconciler.object-attributes.create")
        return self.read(dn, attributes)

    def live_attributes(self, dn: str) -> AttributeSet | None:
        """
        Return every attribute value of ``dn`` except its RDN, or ``None`` if
        ``dn`` does not exist.
        """
        try:
            entries = self.client.search(dn, ldap.SCOPE_BASE)
        except ldap.NO_SUCH_OBJECT:
            return None
        if not entries:
            return None
        return attributes_from_entry(dn, entries[0][1], logger=self.logger)

    def read(
        self,
        dn: str,
        attributes: AttributeSet,
        previous: AttributeSet | None = None,
    ) -> ReadResult:
        """
        Find which of our owned values still exist on ``dn``.

        Both the values we owned before (``previous``) and the ones we own now
        (``attributes``) are checked, so that a read in the middle of a change
        still sees both sides of it.

        Args:
            dn: the entry holding the values
            attributes: the values we own
            previous: the values we owned before the pending change, if any

        Returns:
            The owned values present in the directory.  ``exists`` is ``False``
            when none are, or when ``dn`` itself is gone.

        """
        live = self.live_attributes(dn)
        if live is None:
            self.logger.warning("ldapreconciler.object-attributes.read.not-found", dn=dn)
            return ReadResult(AttributeSet(), exists=False)
        relevant = attributes if previous is None else previous | attributes
        owned = relevant & live
        self.logger.debug(
            "ldapreconciler.object-attributes.read.success",
            dn=dn,
            live=len(live),
            owned=len(owned),
        )
        if not owned:
            self.logger.warning("ldapreconciler.object-attributes.read.gone", dn=dn)
            return ReadResult(owned, exists=False)
        return ReadResult(owned, exists=True)

    def update(
        self, dn: str, old: AttributeSet, new: AttributeSet
    ) -> ReadResult:
        """
        Delete the owned values that are in ``old`` but not ``new`` and add the
        ones in ``new`` but not ``old``, in a single modify request.

        Raises:
            ldap.LDAPError: the directory rejected the modify; nothing was applied

        """
        self.logger.debug(
            "ldapreconciler.object-attributes.update.start",
            dn=dn,
            old=format_attributes("old attributes", old),
            new=format_attributes("new attributes", new),
        )
        directives = compute_attribute_deltas(old, new, logger=self.logger)
        self._modify(dn, directives, "ldapreconciler.object-attributes.update")
        return self.read(dn, new, previous=old)

    def delete(self, dn: str, attributes: AttributeSet) -> None:
        """
        Remove exactly the owned ``attributes`` values from ``dn``.
        """
        directives = compute_attribute_deltas(attributes, AttributeSet(), logger=self.logger)
        self._modify(dn, directives, "ldapreconciler.object-attributes.delete")


class ObjectLookup:
    """
    Finds a single entry by attribute values, without managing it.

    Args:
        client: the directory client to use

    Keyword Args:
        logger: the structlog logger to use

    """

    def __init__(self, client: DirectoryClient, logger: Any = logger) -> None:
        self.client = client
        self.logger = logger

    @staticmethod
    def build_filter(search_values: Mapping[str, str]) -> str:
        """
        AND together an equality test per ``search_values`` item.  With no
        values, every entry matches.
        """
        terms = [
            Filter.attribute(name).equal_to(value)
            for name, value in sorted(search_values.items())
        ]
        if not terms:
            return Filter.attribute(OBJECTCLASS_ATTRIBUTE).present().to_string()
        return Filter.AND(terms).to_string()

    def find(
        self,
        basedn: str,
        search_values: Mapping[str, str],
        depth: str = "subtree",
        policy: FilterPolicy | None = None,
    ) -> LookupResult:
        """
        Find the one entry under ``basedn`` matching every ``search_values`` item.

        Args:
            basedn: where to start searching
            search_values: attribute name -> value that must all match
            depth: a search depth name, see
                :py:data:`~ldapreconciler.managers.SEARCH_DEPTHS`
            policy: which attributes to return

        Raises:
            InvalidSearchDepth: ``depth`` is not a known name
            EntryNotFound: nothing matched, or ``basedn`` does not exist
            MultipleEntriesReturned: more than one entry matched
            ReconcilerError: the entry found has no usable DN

        """
        scope = normalize_search_depth(depth)
        searchfilter = self.build_filter(search_values)
        policy = policy or ALLOW_ALL
        self.logger.debug(
            "ldapreconciler.lookup.search", basedn=basedn, filter=searchfilter
        )
        try:
            entries = self.client.search(basedn, scope, searchfilter)
        except ldap.NO_SUCH_OBJECT as e:
            msg = f"Object not found with filter: {searchfilter}"
            self.logger.warning("ldapreconciler.lookup.not-found", filter=searchfilter)
            raise EntryNotFound(msg) from e
        if len(entries) > 1:
            msg = f"There was more than one object found with search {searchfilter}"
            self.logger.error("ldapreconciler.lookup.multiple", filter=searchfilter)
            raise MultipleEntriesReturned(msg)
        if not entries:
            msg = f"There were no objects found against {searchfilter}"
            self.logger.error("ldapreconciler.lookup.none", filter=searchfilter)
            raise EntryNotFound(msg)

        dn, attrs = entries[0]
        if not dn:
            for key in DN_ATTRIBUTES:
                if attrs.get(key):
                    dn = _decode(attrs[key])[0]
                    break
        if not dn:
            msg = f"Failed to find the DN of the object matching {searchfilter}"
            self.logger.error("ldapreconciler.lookup.no-dn", filter=searchfilter)
            raise ReconcilerError(msg)
        attributes = attributes_from_entry(
            dn, attrs, policy, skip_rdn=False, logger=self.logger
        )
        self.logger.debug("ldapreconciler.lookup.found", dn=dn, count=len(attributes))
        return LookupResult(dn, attributes)
