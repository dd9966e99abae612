import unittest

from ldapreconciler.logging import CENSORED, censor_password_processor


class TestCensorPasswordProcessor(unittest.TestCase):

    def test_password_keys(self):
        event = censor_password_processor(
            None, "info", {"event": "bind", "password": "s3cret", "bind_password": "x"}
        )
        self.assertEqual(event["password"], CENSORED)
        self.assertEqual(event["bind_password"], CENSORED)
        self.assertEqual(event["event"], "bind")

    def test_sensitive_attributes(self):
        event = censor_password_processor(None, "debug", {"unicodePwd": "s3cret", "mail": "a@x"})
        self.assertEqual(event, {"unicodePwd": CENSORED, "mail": "a@x"})
