"""
LDAP server configuration.

Servers are defined in ``settings.LDAP_SERVERS``, keyed by a name of our
choosing::

    LDAP_SERVERS = {
        "default": {
            "url": "ldaps://ldap.example.com",
            "user": "cn=admin,dc=example,dc=com",
            "password": "secret",
            "use_starttls": False,
            "tls_verify": "always",
            "timeout": 15.0,
        }
    }

Any key not given there is looked up in the environment (``LDAP_URL``,
``LDAP_BIND_USER``, ``LDAP_BIND_PASSWORD``, ``LDAP_USE_STARTTLS``,
``LDAP_SKIP_VERIFY``), so a server can be configured entirely from the
environment.
"""

import os
from typing import Any

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

#: Server config key -> environment variable to fall back on.
ENVIRONMENT_DEFAULTS: dict[str, str] = {
    "url": "LDAP_URL",
    "user": "LDAP_BIND_USER",
    "password": "LDAP_BIND_PASSWORD",
    "use_starttls": "LDAP_USE_STARTTLS",
}

#: Keys that must end up with a value.
REQUIRED_KEYS = ("url", "user", "password")

#: Values of ``tls_verify`` we understand.
TLS_VERIFY_CHOICES = ("never", "always")

TRUE_VALUES = ("1", "true", "yes", "on")


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in TRUE_VALUES
    return bool(value)


def get_server_config(name: str = "default") -> dict[str, Any]:
    """
    Return the full configuration for the LDAP server ``name``, with defaults
    and environment fallbacks filled in.

    Args:
        name: the key into ``settings.LDAP_SERVERS``

    Raises:
        ImproperlyConfigured: a required key has no value, or ``tls_verify`` is
            not one of :py:data:`TLS_VERIFY_CHOICES`

    Returns:
        The server configuration.

    """
    servers = getattr(settings, "LDAP_SERVERS", {}) or {}
    config: dict[str, Any] = dict(servers.get(name, {}))
    for key, variable in ENVIRONMENT_DEFAULTS.items():
        if key not in config and variable in os.environ:
            config[key] = os.environ[variable]
    if "tls_verify" not in config and "LDAP_SKIP_VERIFY" in os.environ:
        config["tls_verify"] = (
            "never" if _as_bool(os.environ["LDAP_SKIP_VERIFY"]) else "always"
        )

    for key in REQUIRED_KEYS:
        if not config.get(key):
            msg = (
                f"LDAP server '{name}' has no '{key}': set it in "
                f"settings.LDAP_SERVERS['{name}'] or via ${ENVIRONMENT_DEFAULTS[key]}"
            )
            raise ImproperlyConfigured(msg)

    config["use_starttls"] = _as_bool(config.get("use_starttls", False))
    config["follow_referrals"] = _as_bool(config.get("follow_referrals", False))
    config["timeout"] = float(config.get("timeout", 15.0))
    config.setdefault("tls_verify", "always")
    if config["tls_verify"] not in TLS_VERIFY_CHOICES:
        msg = f"Invalid tls_verify value for LDAP server '{name}': {config['tls_verify']}"
        raise ImproperlyConfigured(msg)
    return config
