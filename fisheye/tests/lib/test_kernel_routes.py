"""
Routing Sink Tests

Tests for the in-memory and kernel route tables
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../..'))

import unittest
import subprocess
from unittest.mock import patch, Mock
from lib.kernel_routes import KernelRouteManager, MemoryRouteTable


def completed(returncode=0, stderr=""):
    return Mock(returncode=returncode, stdout="", stderr=stderr)


class TestMemoryRouteTable(unittest.TestCase):
    """Test the dry-run sink"""

    def setUp(self):
        self.table = MemoryRouteTable()

    def test_install_and_get(self):
        self.assertTrue(self.table.install("10.0.0.3", "10.0.0.2", 2, "fsr"))
        self.assertEqual(self.table.get_routes("fsr"), {"10.0.0.3": ("10.0.0.2", 2)})

    def test_owner_tags_isolated(self):
        self.table.install("10.0.0.3", "10.0.0.2", 2, "fsr")
        self.table.install("10.0.0.9", "10.0.0.2", 1, "static")
        self.table.clear_all("fsr")

        self.assertEqual(self.table.get_routes("fsr"), {})
        self.assertEqual(self.table.get_routes("static"), {"10.0.0.9": ("10.0.0.2", 1)})

    def test_get_routes_is_copy(self):
        self.table.install("10.0.0.3", "10.0.0.2", 2, "fsr")
        self.table.get_routes("fsr").clear()
        self.assertEqual(len(self.table.get_routes("fsr")), 1)


class TestKernelRouteManager(unittest.TestCase):
    """Test kernel route commands"""

    def setUp(self):
        self.manager = KernelRouteManager()

    @patch("lib.kernel_routes.subprocess.run")
    def test_install_command(self, mock_run):
        mock_run.return_value = completed()

        self.assertTrue(self.manager.install("10.0.0.3", "10.0.0.2", 2, "fsr"))

        args = mock_run.call_args[0][0]
        self.assertEqual(args, ["ip", "route", "replace", "10.0.0.3/32", "via", "10.0.0.2", "metric", "2"])
        self.assertEqual(self.manager.get_routes("fsr"), {"10.0.0.3": ("10.0.0.2", 2)})

    @patch("lib.kernel_routes.subprocess.run")
    def test_install_failure_not_tracked(self, mock_run):
        mock_run.return_value = completed(returncode=2, stderr="RTNETLINK answers: Operation not permitted")

        self.assertFalse(self.manager.install("10.0.0.3", "10.0.0.2", 2, "fsr"))
        self.assertEqual(self.manager.get_routes("fsr"), {})

    @patch("lib.kernel_routes.subprocess.run")
    def test_install_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="ip", timeout=5)
        self.assertFalse(self.manager.install("10.0.0.3", "10.0.0.2", 2, "fsr"))

    @patch("lib.kernel_routes.subprocess.run")
    def test_install_without_ip_binary(self, mock_run):
        mock_run.side_effect = FileNotFoundError("ip")
        self.assertFalse(self.manager.install("10.0.0.3", "10.0.0.2", 2, "fsr"))

    @patch("lib.kernel_routes.subprocess.run")
    def test_clear_all_removes_owned_routes(self, mock_run):
        mock_run.return_value = completed()
        self.manager.install("10.0.0.3", "10.0.0.2", 2, "fsr")
        self.manager.install("10.0.0.2", "10.0.0.2", 1, "fsr")
        mock_run.reset_mock()

        self.manager.clear_all("fsr")

        commands = [c[0][0] for c in mock_run.call_args_list]
        self.assertCountEqual(commands, [
            ["ip", "route", "del", "10.0.0.3/32", "metric", "2"],
            ["ip", "route", "del", "10.0.0.2/32", "metric", "1"]
        ])
        self.assertEqual(self.manager.get_routes("fsr"), {})

    @patch("lib.kernel_routes.subprocess.run")
    def test_remove_missing_route(self, mock_run):
        mock_run.return_value = completed(returncode=2, stderr="RTNETLINK answers: No such process")
        self.assertTrue(self.manager.remove_route("10.0.0.3", 2))

    @patch("lib.kernel_routes.subprocess.run")
    def test_clear_unknown_owner(self, mock_run):
        self.manager.clear_all("fsr")
        mock_run.assert_not_called()


if __name__ == '__main__':
    unittest.main()
