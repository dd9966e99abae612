import unittest

from ldapreconciler.policy import ALLOW_ALL, FilterPolicy


class TestFilterPolicy(unittest.TestCase):
    """Test attribute name filtering."""

    def test_allow_all(self):
        self.assertFalse(ALLOW_ALL.should_skip("mail"))

    def test_skip_list(self):
        policy = FilterPolicy.from_lists(skip=["mail"])
        self.assertTrue(policy.should_skip("mail"))
        self.assertFalse(policy.should_skip("title"))

    def test_select_list(self):
        policy = FilterPolicy.from_lists(select=["mail"])
        self.assertFalse(policy.should_skip("mail"))
        self.assertTrue(policy.should_skip("title"))

    def test_skip_wins_over_select(self):
        policy = FilterPolicy.from_lists(skip=["a"], select=["a", "b"])
        self.assertTrue(policy.should_skip("a"))
        self.assertFalse(policy.should_skip("b"))

    def test_names_are_case_sensitive(self):
        policy = FilterPolicy.from_lists(skip=["mail"])
        self.assertFalse(policy.should_skip("Mail"))

    def test_for_object_always_skips_objectclass(self):
        self.assertTrue(FilterPolicy.for_object().should_skip("objectClass"))
        policy = FilterPolicy.for_object(skip=["mail"], select=["objectClass", "mail", "cn"])
        self.assertTrue(policy.should_skip("objectClass"))
        self.assertTrue(policy.should_skip("mail"))
        self.assertFalse(policy.should_skip("cn"))
