"""Tests for activation and end-to-end wiring of the client."""

import asyncio
import unittest

from metals_client.extension import (
    OPEN_SETTINGS_ACTION,
    OPEN_SETTINGS_COMMAND,
    RESTART_SERVER_COMMAND,
    RETRY_ACTION,
    MetalsExtension,
)
from metals_client.logging import LogLevel
from metals_client.slow_task import SlowTaskOutcome

from helpers.connection import ConnectionFactory, FakeConnection, refused
from helpers.host import FakeEditor, FakeHost
from helpers.logging import LoggerStub
from helpers.session import FAST_CONFIG, wait_until


class ExtensionTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.host = FakeHost()
        self.logger = LoggerStub()

    def _extension(self, *connections):
        self.factory = ConnectionFactory(*connections)
        return MetalsExtension(self.host, self.logger, self.factory)


class TestActivation(ExtensionTestCase):
    async def test_no_workspace_folder(self):
        self.host.folders = []
        extension = self._extension()

        self.assertIsNone(await extension.activate(FAST_CONFIG))

        self.assertEqual(self.factory.built, [])
        self.assertTrue(self.logger.lines(LogLevel.WARN))

    async def test_workspace_path_from_folder_uri(self):
        self.host.folders = ["file:///home/user/my%20project"]
        extension = self._extension()

        await extension.activate(FAST_CONFIG)

        _, workspace = self.factory.calls[0]
        self.assertEqual(workspace.as_posix(), "/home/user/my project")

    async def test_activation_wires_components(self):
        extension = self._extension()

        session = await extension.activate(FAST_CONFIG)

        self.assertIsNotNone(session.components)
        connection = self.factory.built[0]
        for method in (
            "metals/status",
            "metals/executeClientCommand",
            "metals/publishDecorations",
            "metals/decorationTypeDidChange",
        ):
            self.assertIn(method, connection.notification_handlers)
        for method in ("metals/slowTask", "metals/inputBox", "metals/quickPick"):
            self.assertIn(method, connection.request_handlers)
        self.assertIn(RESTART_SERVER_COMMAND, self.host.registered_commands())
        self.assertIn("metals.build-import", self.host.registered_commands())

    async def test_failure_offers_settings_and_retry(self):
        extension = self._extension(FakeConnection(fail_start=refused("java not found")))

        self.assertIsNone(await extension.activate(FAST_CONFIG))

        message, choices = self.host.error_messages[0]
        self.assertIn("java not found", message)
        self.assertEqual(choices, (OPEN_SETTINGS_ACTION, RETRY_ACTION))
        self.assertTrue(self.host.output.visible)
        self.assertIn("java not found", self.logger.lines(LogLevel.FATAL))

    async def test_open_settings_choice(self):
        self.host.error_choices = [OPEN_SETTINGS_ACTION]
        extension = self._extension(FakeConnection(fail_start=refused()))

        self.assertIsNone(await extension.activate(FAST_CONFIG))

        self.assertIn((OPEN_SETTINGS_COMMAND, ("metals",)), self.host.executed)
        self.assertEqual(len(self.factory.built), 1)

    async def test_retry_choice_starts_again(self):
        self.host.error_choices = [RETRY_ACTION]
        extension = self._extension(FakeConnection(fail_start=refused()), FakeConnection())

        session = await extension.activate(FAST_CONFIG)

        self.assertIsNotNone(session)
        self.assertEqual(len(self.factory.built), 2)
        self.assertIs(extension.session, session)

    async def test_restart_replaces_session(self):
        extension = self._extension()
        first = await extension.activate(FAST_CONFIG)

        second = await self.host.invoke(RESTART_SERVER_COMMAND)

        self.assertIsNot(first, second)
        self.assertEqual(self.factory.built[0].stop_calls, 1)
        self.assertEqual(self.host.registrations.count(RESTART_SERVER_COMMAND), 2)
        self.assertIs(extension.session, second)

    async def test_restart_before_activation(self):
        extension = self._extension()

        self.assertIsNone(await extension.restart())
        self.assertEqual(self.factory.built, [])

    async def test_deactivate_releases_everything(self):
        extension = self._extension()
        await extension.activate(FAST_CONFIG)
        self.factory.built[0].server_notify("metals/status", {"text": "Ok", "show": True})

        await extension.deactivate()

        self.assertIsNone(extension.session)
        self.assertEqual(self.factory.built[0].stop_calls, 1)
        self.assertFalse(self.host.status_items[0].visible)
        self.assertNotIn("metals.build-import", self.host.registered_commands())


class TestEndToEnd(ExtensionTestCase):
    async def asyncSetUp(self):
        self.extension = self._extension()
        self.session = await self.extension.activate(FAST_CONFIG)
        self.connection = self.factory.built[0]

    async def test_status_command_click_forwards(self):
        self.connection.server_notify(
            "metals/status", {"text": "Build server disconnected", "show": True, "command": "build-connect"}
        )
        item = self.host.status_items[0]

        await self.host.invoke(item.command)

        self.assertEqual(self.connection.executed, [("build-connect", None)])

    async def test_slow_task_user_cancel(self):
        request = self.connection.server_request("metals/slowTask", {"message": "Importing build"})
        await wait_until(lambda: self.host.progresses[1:])

        self.host.progresses[1].cancel()

        self.assertEqual(await request, {"cancel": True})

    async def test_slow_task_server_cancel(self):
        request = self.connection.server_request("metals/slowTask", {"message": "Compiling"})
        await wait_until(lambda: self.session.components.slow_tasks.active_tasks)
        task = self.session.components.slow_tasks.active_tasks[0]

        request.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await request

        self.assertEqual(task.outcome, SlowTaskOutcome.COMPLETED_BY_SERVER)

    async def test_deactivate_ends_pending_slow_task(self):
        request = self.connection.server_request("metals/slowTask", {"message": "Indexing"})
        await wait_until(lambda: self.session.components.slow_tasks.active_tasks)
        task = self.session.components.slow_tasks.active_tasks[0]
        progress = self.host.progresses[1]

        await self.extension.deactivate()

        self.assertFalse(task.ticking)
        self.assertTrue(progress.closed)
        self.assertEqual(await request, {"cancel": True})
        ticks = len(progress.messages)
        await asyncio.sleep(0.05)
        self.assertEqual(len(progress.messages), ticks)

    async def test_restart_ends_pending_slow_task(self):
        request = self.connection.server_request("metals/slowTask", {"message": "Indexing"})
        await wait_until(lambda: self.session.components.slow_tasks.active_tasks)
        task = self.session.components.slow_tasks.active_tasks[0]

        await self.host.invoke(RESTART_SERVER_COMMAND)

        self.assertEqual(task.outcome, SlowTaskOutcome.SESSION_CLOSED)
        self.assertEqual(await request, {"cancel": True})

    async def test_focus_notifications(self):
        self.host.focus(FakeEditor("file:///workspace/A.scala"))
        self.host.focus(FakeEditor("file:///workspace/README.md", language_id="markdown"))
        self.host.set_window_focused(False)

        self.assertEqual(
            self.connection.notifications,
            [
                ("metals/didFocusTextDocument", "file:///workspace/A.scala"),
                ("metals/windowStateDidChange", {"focused": False}),
            ],
        )

    async def test_focus_listeners_removed_on_deactivate(self):
        await self.extension.deactivate()

        self.host.focus(FakeEditor("file:///workspace/A.scala"))

        self.assertEqual(self.connection.notifications, [])

    async def test_input_box(self):
        self.host.input_box_answer = "MyClass"

        result = await self.connection.server_request("metals/inputBox", {"prompt": "Name"})

        self.assertEqual(result, {"value": "MyClass"})
        self.assertEqual(self.host.prompts, [("input", {"prompt": "Name"})])


if __name__ == "__main__":
    unittest.main()
