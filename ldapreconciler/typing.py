"""
Type aliases for the python-ldap data structures the reconciler exchanges with
the directory.
"""

#: One ``(MOD_*, attribute, values)`` entry for ``modify_s``.  ``values`` is
#: ``None`` when a whole attribute is being deleted.
ModifyModlistEntry = tuple[int, str, list[bytes] | None]
ModifyModlist = list[ModifyModlistEntry]
#: The ``(attribute, values)`` list ``add_s`` expects.
AddModlist = list[tuple[str, list[bytes]]]
#: A single search result: ``(dn, {attribute: [values]})``.
LDAPData = tuple[str, dict[str, list[bytes]]]
