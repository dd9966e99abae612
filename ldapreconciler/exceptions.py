class ReconcilerError(Exception):
    """
    Base class for errors raised by the reconciler itself.  Errors from the
    directory (``ldap.LDAPError`` and friends) are not wrapped.
    """


class EntryNotFound(ReconcilerError):
    """
    An entry we needed does not exist.  Only raised where a missing entry is
    fatal; reads report a missing entry through ``exists=False`` instead.
    """


class MultipleEntriesReturned(ReconcilerError):
    """
    A lookup that must match exactly one entry matched several.
    """


class InvalidSearchDepth(ReconcilerError, ValueError):
    """
    The search depth name is not one we know.
    """
