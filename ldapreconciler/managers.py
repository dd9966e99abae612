# mypy: disable-error-code="attr-defined"
"""
The directory client.

:py:class:`DirectoryClient` is the thin layer between the reconcilers and
python-ldap: it owns the connection, and exposes search, add, modify and
delete.  Each call is one synchronous request; nothing is retried.
"""

from collections.abc import Callable, Iterable
from functools import wraps
from pathlib import Path
from typing import Any

import structlog

from ldapreconciler import ldap

from .conf import get_server_config
from .diff import Directive, Modlist
from .exceptions import InvalidSearchDepth
from .typing import LDAPData

logger = structlog.get_logger("ldapreconciler")

#: python-ldap scope -> the names a search depth may be given as.  The first
#: name is the canonical one.
SEARCH_DEPTHS: dict[int, tuple[str, ...]] = {
    ldap.SCOPE_SUBTREE: ("sub", "subtree", "wholeSubtree"),
    ldap.SCOPE_BASE: ("base", "baseObject"),
    ldap.SCOPE_ONELEVEL: ("one", "singleLevel"),
}


def depth_help_string() -> str:
    """
    Describe the accepted search depth names, e.g. for error messages.
    """
    return ", ".join(
        f"{names[0]} (or {', '.join(names[1:])})" for names in SEARCH_DEPTHS.values()
    )


def normalize_search_depth(depth: str) -> int:
    """
    Map a search depth name onto a python-ldap scope.  Matching ignores case.

    Args:
        depth: one of the names in :py:data:`SEARCH_DEPTHS`

    Raises:
        InvalidSearchDepth: ``depth`` is not a known name

    Returns:
        One of ``ldap.SCOPE_SUBTREE``, ``ldap.SCOPE_BASE`` or
        ``ldap.SCOPE_ONELEVEL``.

    """
    wanted = depth.lower()
    for scope, names in SEARCH_DEPTHS.items():
        if any(name.lower() == wanted for name in names):
            return scope
    msg = f"Search depth of '{depth}' is not a valid option; use one of {depth_help_string()}"
    raise InvalidSearchDepth(msg)


def atomic(func: Callable) -> Callable:
    """
    Decorator for :py:class:`DirectoryClient` methods that talk to the server.

    If the client already has a connection, the method uses it.  Otherwise a
    connection is opened for the duration of the call and unbound afterwards,
    whatever happens inside the method.
    """

    @wraps(func)
    def wrapper(self, *args, **kwargs) -> Any:
        if self.has_connection():
            return func(self, *args, **kwargs)
        self.connect()
        try:
            retval = func(self, *args, **kwargs)
        finally:
            self.disconnect()
        return retval

    return wrapper


class DirectoryClient:
    """
    Talks to one LDAP server, configured as ``settings.LDAP_SERVERS[server]``
    (see :py:mod:`ldapreconciler.conf`).

    The client holds a single connection.  Call :py:meth:`connect` to keep one
    open across many operations; otherwise each operation opens and closes its
    own.  There is no locking: callers sharing a client between threads must
    serialize their calls themselves.

    Args:
        server: the key into ``settings.LDAP_SERVERS``

    Keyword Args:
        logger: the structlog logger to use

    """

    def __init__(self, server: str = "default", logger: Any = logger) -> None:
        self.server = server
        self.logger = logger
        self._connection: "ldap.ldapobject.LDAPObject | None" = None  # type: ignore[name-defined]

    def has_connection(self) -> bool:
        return self._connection is not None

    def set_connection(self, obj: "ldap.ldapobject.LDAPObject") -> None:  # type: ignore[name-defined]
        """
        Use ``obj`` as this client's connection.
        """
        self._connection = obj

    def remove_connection(self) -> None:
        self._connection = None

    @property
    def connection(self) -> "ldap.ldapobject.LDAPObject":  # type: ignore[name-defined]
        if self._connection is None:
            msg = "DirectoryClient is not connected"
            raise RuntimeError(msg)
        return self._connection

    def _connect(self) -> "ldap.ldapobject.LDAPObject":  # type: ignore[name-defined]
        """
        Create, set up and bind a new LDAP connection object.

        Raises:
            ImproperlyConfigured: the server configuration is incomplete or
                invalid
            OSError: ``tls_ca_certfile`` is given but is not an existing file

        Returns:
            A bound LDAPObject.

        """
        config = get_server_config(self.server)
        ldap_object = ldap.initialize(config["url"])
        if config["follow_referrals"]:
            ldap_object.set_option(ldap.OPT_REFERRALS, 1)
        else:
            ldap_object.set_option(ldap.OPT_REFERRALS, 0)
        ldap_object.set_option(ldap.OPT_NETWORK_TIMEOUT, config["timeout"])
        if config["tls_verify"] == "never":
            ldap_object.set_option(ldap.OPT_X_TLS_REQUIRE_CERT, ldap.OPT_X_TLS_NEVER)
        else:
            ldap_object.set_option(ldap.OPT_X_TLS_REQUIRE_CERT, ldap.OPT_X_TLS_DEMAND)
        if tls_ca_certfile := config.get("tls_ca_certfile"):
            if not Path(tls_ca_certfile).is_file():
                msg = f"CA Certificate file does not exist or is not a file: {tls_ca_certfile}"
                raise OSError(msg)
            ldap_object.set_option(ldap.OPT_X_TLS_CACERTFILE, tls_ca_certfile)
        ldap_object.set_option(ldap.OPT_X_TLS_NEWCTX, 0)
        if config["use_starttls"]:
            ldap_object.start_tls_s()
        ldap_object.simple_bind_s(config["user"], config["password"])
        self.logger.debug("ldapreconciler.client.connected", url=config["url"])
        return ldap_object

    def connect(self) -> None:
        """
        Open and bind the client's connection.  Connection and bind errors from
        python-ldap propagate as-is.
        """
        self.set_connection(self._connect())

    def disconnect(self) -> None:
        self.connection.unbind_s()
        self.remove_connection()

    @atomic
    def search(
        self,
        basedn: str,
        scope: int = ldap.SCOPE_SUBTREE,
        searchfilter: str = "(objectClass=*)",
        attributes: list[str] | None = None,
    ) -> list[LDAPData]:
        """
        Search the directory.

        Args:
            basedn: where to start the search
            scope: one of the ``ldap.SCOPE_*`` constants
            searchfilter: the LDAP filter string
            attributes: the attributes to fetch; ``None`` fetches all of them

        Raises:
            ldap.NO_SUCH_OBJECT: ``basedn`` does not exist

        Returns:
            A list of ``(dn, attrs)`` tuples.

        """
        data = self.connection.search_s(
            basedn, scope, filterstr=searchfilter, attrlist=attributes
        )
        # Drop the search references AD puts in the results
        return [obj for obj in data if isinstance(obj[1], dict)]

    @atomic
    def add(self, dn: str, attributes: dict[str, list[str]]) -> None:
        """
        Create the entry ``dn`` with ``attributes``.
        """
        self.connection.add_s(dn, Modlist.add(attributes))

    @atomic
    def modify(self, dn: str, directives: Iterable[Directive]) -> None:
        """
        Apply all of ``directives`` to ``dn`` in one modify request.
        """
        self.connection.modify_s(dn, Modlist.from_directives(directives))

    @atomic
    def delete(self, dn: str) -> None:
        self.connection.delete_s(dn)
