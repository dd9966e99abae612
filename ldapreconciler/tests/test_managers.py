# mypy: disable-error-code="attr-defined"
import unittest
from unittest.mock import MagicMock, call, patch

import ldap
from django.conf import settings

from ldapreconciler.diff import Add, Delete, Replace
from ldapreconciler.exceptions import InvalidSearchDepth
from ldapreconciler.managers import DirectoryClient, atomic, normalize_search_depth

if not settings.configured:
    settings.configure(LDAP_SERVERS={})

SERVERS = {
    "default": {
        "url": "ldap://localhost:389",
        "user": "cn=admin,dc=example,dc=com",
        "password": "admin",
        "use_starttls": True,
        "tls_verify": "never",
        "timeout": 5,
    }
}


class TestSearchDepth(unittest.TestCase):
    """Test search depth name normalization."""

    def test_known_names(self):
        for name in ("sub", "subtree", "wholeSubtree", "SUBTREE"):
            self.assertEqual(normalize_search_depth(name), ldap.SCOPE_SUBTREE)
        for name in ("base", "baseObject", "BaseObject"):
            self.assertEqual(normalize_search_depth(name), ldap.SCOPE_BASE)
        for name in ("one", "singleLevel"):
            self.assertEqual(normalize_search_depth(name), ldap.SCOPE_ONELEVEL)

    def test_unknown_name(self):
        with self.assertRaises(InvalidSearchDepth) as ctx:
            normalize_search_depth("deep")
        self.assertIn("subtree", str(ctx.exception))
        self.assertIsInstance(ctx.exception, ValueError)


class TestDirectoryClient(unittest.TestCase):
    """Test DirectoryClient with a mocked python-ldap connection."""

    def setUp(self):
        self.settings_patcher = patch("django.conf.settings.LDAP_SERVERS", SERVERS)
        self.settings_patcher.start()
        self.conn = MagicMock()
        self.client = DirectoryClient("default")
        self.client.set_connection(self.conn)

    def tearDown(self):
        self.settings_patcher.stop()

    def test_search_drops_references(self):
        self.conn.search_s.return_value = [
            ("cn=foo,dc=example,dc=com", {"cn": [b"foo"]}),
            (None, ["ldap://other/dc=example,dc=com"]),
        ]
        results = self.client.search("dc=example,dc=com", ldap.SCOPE_SUBTREE, "(cn=foo)")
        self.assertEqual(results, [("cn=foo,dc=example,dc=com", {"cn": [b"foo"]})])
        self.conn.search_s.assert_called_once_with(
            "dc=example,dc=com", ldap.SCOPE_SUBTREE, filterstr="(cn=foo)", attrlist=None
        )

    def test_add(self):
        self.client.add("cn=foo,dc=example,dc=com", {"objectClass": ["top"], "cn": ["foo"]})
        self.conn.add_s.assert_called_once_with(
            "cn=foo,dc=example,dc=com", [("objectClass", [b"top"]), ("cn", [b"foo"])]
        )

    def test_modify_sends_one_request(self):
        self.client.modify(
            "cn=foo,dc=example,dc=com",
            [Delete("z"), Add("mail", ("a@x",)), Replace("title", ("eng",))],
        )
        self.conn.modify_s.assert_called_once_with(
            "cn=foo,dc=example,dc=com",
            [
                (ldap.MOD_DELETE, "z", None),
                (ldap.MOD_ADD, "mail", [b"a@x"]),
                (ldap.MOD_REPLACE, "title", [b"eng"]),
            ],
        )

    def test_delete(self):
        self.client.delete("cn=foo,dc=example,dc=com")
        self.conn.delete_s.assert_called_once_with("cn=foo,dc=example,dc=com")

    def test_errors_propagate(self):
        self.conn.modify_s.side_effect = ldap.UNWILLING_TO_PERFORM({"desc": "no"})
        with self.assertRaises(ldap.UNWILLING_TO_PERFORM):
            self.client.modify("cn=foo,dc=example,dc=com", [Delete("z")])
        # an explicitly set connection is never closed by the client
        self.conn.unbind_s.assert_not_called()

    def test_connection_property_requires_connection(self):
        client = DirectoryClient("default")
        self.assertFalse(client.has_connection())
        with self.assertRaises(RuntimeError):
            client.connection  # noqa: B018

    @patch("ldapreconciler.ldap.initialize")
    def test_connect_configures_and_binds(self, mock_initialize):
        ldap_object = MagicMock()
        mock_initialize.return_value = ldap_object
        client = DirectoryClient("default")
        client.connect()
        mock_initialize.assert_called_once_with("ldap://localhost:389")
        ldap_object.set_option.assert_any_call(ldap.OPT_REFERRALS, 0)
        ldap_object.set_option.assert_any_call(ldap.OPT_NETWORK_TIMEOUT, 5.0)
        ldap_object.set_option.assert_any_call(
            ldap.OPT_X_TLS_REQUIRE_CERT, ldap.OPT_X_TLS_NEVER
        )
        ldap_object.start_tls_s.assert_called_once_with()
        ldap_object.simple_bind_s.assert_called_once_with(
            "cn=admin,dc=example,dc=com", "admin"
        )
        self.assertTrue(client.has_connection())
        client.disconnect()
        ldap_object.unbind_s.assert_called_once_with()
        self.assertFalse(client.has_connection())

    @patch("ldapreconciler.ldap.initialize")
    def test_bind_failure_propagates(self, mock_initialize):
        ldap_object = MagicMock()
        ldap_object.simple_bind_s.side_effect = ldap.INVALID_CREDENTIALS({"desc": "bad"})
        mock_initialize.return_value = ldap_object
        client = DirectoryClient("default")
        with self.assertRaises(ldap.INVALID_CREDENTIALS):
            client.delete("cn=foo,dc=example,dc=com")
        self.assertFalse(client.has_connection())

    @patch("ldapreconciler.ldap.initialize")
    def test_missing_ca_certfile(self, mock_initialize):
        mock_initialize.return_value = MagicMock()
        servers = {"default": {**SERVERS["default"], "tls_ca_certfile": "/nonexistent/ca.pem"}}
        with patch("django.conf.settings.LDAP_SERVERS", servers):
            with self.assertRaises(OSError):
                DirectoryClient("default").connect()


class TestAtomic(unittest.TestCase):
    """Test the @atomic decorator."""

    def _make(self, has_connection):
        obj = MagicMock()
        obj.has_connection.return_value = has_connection
        return obj

    def test_reuses_open_connection(self):
        obj = self._make(True)
        func = MagicMock(return_value="result")
        self.assertEqual(atomic(func)(obj, 1, key="v"), "result")
        func.assert_called_once_with(obj, 1, key="v")
        obj.connect.assert_not_called()
        obj.disconnect.assert_not_called()

    def test_opens_and_closes_connection(self):
        obj = self._make(False)
        func = MagicMock(return_value="result")
        self.assertEqual(atomic(func)(obj), "result")
        self.assertEqual(obj.method_calls[-2:], [call.connect(), call.disconnect()])

    def test_closes_connection_on_error(self):
        obj = self._make(False)
        func = MagicMock(side_effect=ldap.SERVER_DOWN({"desc": "down"}))
        with self.assertRaises(ldap.SERVER_DOWN):
            atomic(func)(obj)
        obj.disconnect.assert_called_once_with()
