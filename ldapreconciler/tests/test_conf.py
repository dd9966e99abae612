import os
import unittest
from unittest.mock import patch

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from ldapreconciler.conf import get_server_config

if not settings.configured:
    settings.configure(LDAP_SERVERS={})


class TestServerConfig(unittest.TestCase):
    """Test LDAP server configuration lookup."""

    def setUp(self):
        self.settings_patcher = patch(
            "django.conf.settings.LDAP_SERVERS",
            {
                "default": {
                    "url": "ldap://localhost:389",
                    "user": "cn=admin,dc=example,dc=com",
                    "password": "admin",
                },
                "bad_tls": {
                    "url": "ldap://localhost:389",
                    "user": "cn=admin,dc=example,dc=com",
                    "password": "admin",
                    "tls_verify": "sometimes",
                },
            },
        )
        self.settings_patcher.start()
        self.env_patcher = patch.dict(os.environ, {}, clear=True)
        self.env_patcher.start()

    def tearDown(self):
        self.env_patcher.stop()
        self.settings_patcher.stop()

    def test_defaults(self):
        config = get_server_config("default")
        self.assertEqual(config["url"], "ldap://localhost:389")
        self.assertFalse(config["use_starttls"])
        self.assertFalse(config["follow_referrals"])
        self.assertEqual(config["tls_verify"], "always")
        self.assertEqual(config["timeout"], 15.0)

    def test_settings_win_over_environment(self):
        os.environ["LDAP_URL"] = "ldap://elsewhere"
        self.assertEqual(get_server_config("default")["url"], "ldap://localhost:389")

    def test_environment_fallback(self):
        os.environ.update(
            {
                "LDAP_URL": "ldaps://ldap.example.com",
                "LDAP_BIND_USER": "cn=svc,dc=example,dc=com",
                "LDAP_BIND_PASSWORD": "s3cret",
                "LDAP_USE_STARTTLS": "true",
                "LDAP_SKIP_VERIFY": "1",
            }
        )
        config = get_server_config("from_env")
        self.assertEqual(config["url"], "ldaps://ldap.example.com")
        self.assertEqual(config["user"], "cn=svc,dc=example,dc=com")
        self.assertEqual(config["password"], "s3cret")
        self.assertTrue(config["use_starttls"])
        self.assertEqual(config["tls_verify"], "never")

    def test_skip_verify_false(self):
        os.environ["LDAP_SKIP_VERIFY"] = "false"
        self.assertEqual(get_server_config("default")["tls_verify"], "always")

    def test_missing_required_key(self):
        with self.assertRaises(ImproperlyConfigured):
            get_server_config("from_env")

    def test_invalid_tls_verify(self):
        with self.assertRaises(ImproperlyConfigured):
            get_server_config("bad_tls")
