"""Integration tests for the metals-client command line."""

import unittest
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest.mock import patch

from typer.testing import CliRunner

from metals_client import __version__
from metals_client.cli import app
from metals_client.config import PROJECT_CONFIG_NAME
from metals_client.extension import MetalsExtension
from helpers.connection import ConnectionFactory, FakeConnection
from helpers.io import strip_ansi_codes
from helpers.session import FAST_CONFIG


def _text(result) -> str:
    """Console output with ANSI codes removed and wrapped lines joined."""
    return " ".join(strip_ansi_codes(result.stdout).split())


class TestVersion(unittest.TestCase):
    def test_version_flag(self):
        result = CliRunner().invoke(app, ["--version"], env={"NO_COLOR": "1"})

        self.assertEqual(result.exit_code, 0)
        self.assertIn(__version__, strip_ansi_codes(result.stdout))


class TestConfigCommands(unittest.TestCase):
    """
    Test reading and writing project settings through `config`.
    """

    def setUp(self):
        self.runner = CliRunner()
        self.env = {"NO_COLOR": "1"}
        self._tmp = TemporaryDirectory()
        self.project = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def _invoke(self, *args):
        return self.runner.invoke(app, ["config", *args, "--project", str(self.project)], env=self.env)

    def test_set_then_get(self):
        result = self._invoke("set", "log_level", "debug")
        self.assertEqual(result.exit_code, 0, result.stdout)
        self.assertTrue((self.project / PROJECT_CONFIG_NAME).exists())

        result = self._invoke("get", "log_level")
        self.assertEqual(result.exit_code, 0)
        self.assertEqual(strip_ansi_codes(result.stdout).strip(), '"debug"')

    def test_set_list_value(self):
        self._invoke("set", "server_properties", "[-Xss4m, -Xmx2G]")

        result = self._invoke("get", "server_properties")
        self.assertEqual(strip_ansi_codes(result.stdout).strip(), '["-Xss4m", "-Xmx2G"]')

    def test_get_missing_key(self):
        result = self._invoke("get", "java_home")

        self.assertEqual(result.exit_code, 1)
        self.assertIn("java_home is not set", _text(result))

    def test_invalid_value_is_reverted(self):
        self._invoke("set", "log_level", "info")

        result = self._invoke("set", "log_level", "loud")

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Invalid log level", _text(result))
        self.assertEqual(strip_ansi_codes(self._invoke("get", "log_level").stdout).strip(), '"info"')

    def test_unknown_key_is_rejected(self):
        result = self._invoke("set", "server_comand", "metals")

        self.assertEqual(result.exit_code, 1)
        self.assertEqual(self._invoke("get", "server_comand").exit_code, 1)

    def test_empty_value_removes(self):
        self._invoke("set", "java_home", "/opt/jdk")
        self._invoke("set", "java_home", "")

        self.assertEqual(self._invoke("get", "java_home").exit_code, 1)

    def test_list(self):
        self._invoke("set", "log_level", "trace")
        self._invoke("set", "tick_interval", "2")

        output = strip_ansi_codes(self._invoke("list").stdout)
        self.assertIn("log_level", output)
        self.assertIn("tick_interval", output)


class TestExecCommand(unittest.TestCase):
    """
    Test `exec` against a scripted server connection.
    """

    def setUp(self):
        self.runner = CliRunner()
        self.env = {"NO_COLOR": "1"}
        self.connection = FakeConnection()
        self.factory = ConnectionFactory(self.connection)

    def _invoke(self, *args):
        with TemporaryDirectory() as tmpdir, patch(
            "metals_client.cli.load_config", return_value=FAST_CONFIG
        ), patch(
            "metals_client.cli.MetalsExtension",
            lambda host, logger: MetalsExtension(host, logger, self.factory),
        ):
            return self.runner.invoke(app, ["exec", *args, "--workspace", tmpdir], env=self.env)

    def test_prints_result_as_json(self):
        self.connection.results["doctor-run"] = {"ok": True}

        result = self._invoke("doctor-run")

        self.assertEqual(result.exit_code, 0, result.stdout)
        self.assertIn('"ok": true', strip_ansi_codes(result.stdout))
        self.assertEqual(self.connection.stop_calls, 1)

    def test_arguments_are_parsed_as_json(self):
        self._invoke("goto", '{"symbol": "scala.Option"}', "plain")

        self.assertEqual(
            self.connection.executed, [("goto", [{"symbol": "scala.Option"}, "plain"])]
        )

    def test_no_arguments(self):
        self._invoke("build-import")

        self.assertEqual(self.connection.executed, [("build-import", None)])

    def test_failed_command_exits_non_zero(self):
        self.connection.failures["build-import"] = RuntimeError("boom")

        result = self._invoke("build-import")

        self.assertEqual(result.exit_code, 1)
        self.assertIn("build-import", _text(result))
        self.assertEqual(self.connection.stop_calls, 1)

    def test_server_not_starting_exits_non_zero(self):
        self.factory = ConnectionFactory(FakeConnection(fail_start=RuntimeError("no java")))

        result = self._invoke("build-import")

        self.assertEqual(result.exit_code, 1)
        self.assertIn("no java", _text(result))


if __name__ == "__main__":
    unittest.main()
