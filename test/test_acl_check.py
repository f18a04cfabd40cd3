import io
import os
import unittest
from contextlib import redirect_stdout
from unittest.mock import MagicMock, patch

from dagacl import acl_logging
from dagacl.authorization.groups import StaticGroupMapping
from dagacl.authorization.manager import ACLManager, reset_acl_manager
from dagacl.cmd import acl_check

CONFIG_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "data", "config"))


class TestACLCheck(unittest.TestCase):
    def setUp(self):
        reset_acl_manager()
        self.am_manager = ACLManager(
            StaticGroupMapping({"dave": ["eng"]}),
            "admin",
            {"view_acls": "alice,carol eng", "modify_acls": "admin2"},
        )
        patcher = patch.object(acl_check, "get_acl_manager", return_value=self.am_manager)
        self.mock_get_acl_manager = patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        reset_acl_manager()

    def _run(self, argv):
        out = io.StringIO()
        with redirect_stdout(out):
            code = acl_check.main(argv)
        return code, out.getvalue()

    def test_granted(self):
        code, out = self._run(["--user", "alice", "--action", "am_view"])
        self.assertEqual(code, 0)
        self.assertIn("GRANTED: user=alice, action=am_view", out)

    def test_granted_through_group(self):
        code, _ = self._run(["--user", "dave", "--action", "dag_view"])
        self.assertEqual(code, 0)

    def test_denied(self):
        code, out = self._run(["--user", "alice", "--action", "am_modify"])
        self.assertEqual(code, 1)
        self.assertIn("DENIED: user=alice, action=am_modify", out)

    def test_am_user_forwarded(self):
        self._run(["--user", "alice", "--action", "am_view", "--am-user", "root"])
        self.mock_get_acl_manager.assert_called_once_with(am_user="root")

    def test_dag_conf(self):
        argv = ["--user", "frank", "--action", "dag_modify", "--dag-user", "bob"]
        self.assertEqual(self._run(argv)[0], 1)
        argv += ["--dag-conf", os.path.join(CONFIG_DIR, "dag.yaml")]
        self.assertEqual(self._run(argv)[0], 0)

    def test_dag_user(self):
        code, _ = self._run(["--user", "bob", "--action", "dag_modify", "--dag-user", "bob"])
        self.assertEqual(code, 0)
        code, _ = self._run(["--user", "bob", "--action", "am_modify", "--dag-user", "bob"])
        self.assertEqual(code, 1)

    def test_dag_conf_requires_dag_user(self):
        err = io.StringIO()
        with patch("sys.stderr", err), self.assertRaises(SystemExit) as cm:
            self._run(["--user", "bob", "--action", "dag_view", "--dag-conf", os.path.join(CONFIG_DIR, "dag.yaml")])
        self.assertEqual(cm.exception.code, 2)
        self.assertIn("--dag-user", err.getvalue())
        self.mock_get_acl_manager.assert_not_called()

    def test_dag_id_set_during_check(self):
        seen = []

        def get_groups(user):
            seen.append(acl_logging.dag_id_var.get(""))
            return set()

        group_mapping = MagicMock()
        group_mapping.get_groups.side_effect = get_groups
        self.mock_get_acl_manager.return_value = ACLManager(group_mapping, "admin", {"view_acls": " eng"})

        self._run(["--user", "dave", "--action", "dag_view", "--dag-user", "bob"])
        self.assertEqual(seen, ["bob"])
        self._run(["--user", "dave", "--action", "am_view"])
        self.assertEqual(seen, ["bob", ""])

    def test_invalid_dag_conf(self):
        argv = ["--user", "bob", "--action", "dag_view", "--dag-user", "bob"]
        argv += ["--dag-conf", os.path.join(CONFIG_DIR, "dag-invalid.yaml")]
        with self.assertLogs("dagacl.acl_check", level="ERROR"):
            code, _ = self._run(argv)
        self.assertEqual(code, 2)

    def test_render(self):
        _, out = self._run(["--user", "alice", "--action", "am_view", "--render"])
        self.assertIn("VIEW_APP=admin,alice,carol eng", out)
        self.assertIn("MODIFY_APP=admin,admin2", out)

    def test_invalid_action(self):
        with patch("sys.stderr", new_callable=io.StringIO):
            with self.assertRaises(SystemExit) as cm:
                acl_check.main(["--user", "alice", "--action", "delete"])
        self.assertEqual(cm.exception.code, 2)


if __name__ == "__main__":
    unittest.main()
