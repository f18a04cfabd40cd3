import unittest

from dagacl.authorization.acl_type import ACLType, PrincipalSet
from dagacl.authorization.parser import ACLConfigurationParser, parse_acls


class TestACLConfigurationParser(unittest.TestCase):
    def test_users_and_groups(self):
        """Test that users and groups are split on the first whitespace."""
        parser = ACLConfigurationParser({"view_acls": "alice,bob eng,ops"})
        self.assertEqual(parser.get_allowed_users(), {ACLType.AM_VIEW_ACL: {"alice", "bob"}})
        self.assertEqual(parser.get_allowed_groups(), {ACLType.AM_VIEW_ACL: {"eng", "ops"}})

    def test_users_only(self):
        parser = ACLConfigurationParser({"modify_acls": "alice"})
        self.assertEqual(parser.get_allowed_users(), {ACLType.AM_MODIFY_ACL: {"alice"}})
        self.assertEqual(parser.get_allowed_groups(), {})

    def test_groups_only(self):
        """Test that a leading whitespace means there are no users."""
        parser = ACLConfigurationParser({"view_acls": " eng"})
        self.assertEqual(parser.get_allowed_users(), {})
        self.assertEqual(parser.get_allowed_groups(), {ACLType.AM_VIEW_ACL: {"eng"}})

    def test_wildcard(self):
        parser = ACLConfigurationParser({"view_acls": " * "})
        self.assertEqual(parser.get_allowed_users(), {ACLType.AM_VIEW_ACL: {"*"}})
        self.assertEqual(parser.get_allowed_groups(), {})

    def test_blank_values_ignored(self):
        parser = ACLConfigurationParser({"view_acls": "", "modify_acls": "   "})
        self.assertEqual(parser.get_allowed_users(), {})
        self.assertEqual(parser.get_allowed_groups(), {})

    def test_entries_trimmed(self):
        parser = ACLConfigurationParser({"view_acls": "alice,,bob, eng, ,ops,"})
        self.assertEqual(parser.get_allowed_users(), {ACLType.AM_VIEW_ACL: {"alice", "bob"}})
        self.assertEqual(parser.get_allowed_groups(), {ACLType.AM_VIEW_ACL: {"eng", "ops"}})

    def test_extra_whitespace_between_lists(self):
        parser = ACLConfigurationParser({"view_acls": "alice \t eng, ops "})
        self.assertEqual(parser.get_allowed_users(), {ACLType.AM_VIEW_ACL: {"alice"}})
        self.assertEqual(parser.get_allowed_groups(), {ACLType.AM_VIEW_ACL: {"eng", "ops"}})

    def test_order_kept(self):
        parser = ACLConfigurationParser({"view_acls": "carol,alice,bob,alice"})
        self.assertEqual(list(parser.get_allowed_users()[ACLType.AM_VIEW_ACL]), ["carol", "alice", "bob"])

    def test_am_mode_ignores_dag_options(self):
        parser = ACLConfigurationParser({"dag_view_acls": "alice", "dag_modify_acls": "bob"})
        self.assertEqual(parser.get_allowed_users(), {})

    def test_dag_mode_reads_dag_options_only(self):
        conf = {
            "view_acls": "mallory",
            "modify_acls": "mallory",
            "dag_view_acls": "alice eng",
            "dag_modify_acls": "bob",
        }
        parser = ACLConfigurationParser(conf, dag_acls=True)
        self.assertEqual(
            parser.get_allowed_users(),
            {ACLType.DAG_VIEW_ACL: {"alice"}, ACLType.DAG_MODIFY_ACL: {"bob"}},
        )
        self.assertEqual(parser.get_allowed_groups(), {ACLType.DAG_VIEW_ACL: {"eng"}})

    def test_no_conf(self):
        parser = ACLConfigurationParser(None)
        self.assertEqual(parser.get_allowed_users(), {})
        self.assertEqual(parser.get_allowed_groups(), {})

    def test_parse_acls(self):
        users, groups = parse_acls({"dag_modify_acls": "bob qa"}, True)
        self.assertIsInstance(users[ACLType.DAG_MODIFY_ACL], PrincipalSet)
        self.assertEqual(users, {ACLType.DAG_MODIFY_ACL: {"bob"}})
        self.assertEqual(groups, {ACLType.DAG_MODIFY_ACL: {"qa"}})


class TestPrincipalSet(unittest.TestCase):
    def test_set_semantics(self):
        principals = PrincipalSet(["b", "a", "b"])
        self.assertEqual(len(principals), 2)
        self.assertIn("a", principals)
        self.assertNotIn("c", principals)
        self.assertEqual(principals, {"a", "b"})

    def test_copy_is_independent(self):
        principals = PrincipalSet(["a"])
        copied = principals.copy()
        copied.add("b")
        self.assertEqual(principals, {"a"})
        self.assertEqual(list(copied), ["a", "b"])

    def test_update_and_discard(self):
        principals = PrincipalSet()
        principals.update(["x", "y"])
        principals.discard("x")
        principals.discard("missing")
        self.assertEqual(list(principals), ["y"])


if __name__ == "__main__":
    unittest.main()
