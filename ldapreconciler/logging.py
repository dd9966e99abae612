"""
structlog helpers for applications that use the reconciler.

Add :py:func:`censor_password_processor` to your ``structlog.configure()``
processor chain so that credentials never reach the log output.
"""

from typing import Any

from .codecs import is_sensitive

#: Event keys that are always censored.
PASSWORD_KEYS = ("password", "bind_password")

CENSORED = "*CENSORED*"


def censor_password_processor(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Censor any logging context key called "password" or "bind_password", and
    any key named after a sensitive attribute such as ``unicodePwd``.
    """
    for key in event_dict:
        if key in PASSWORD_KEYS or is_sensitive(key):
            event_dict[key] = CENSORED
    return event_dict
