"""Tests for the status presenter."""

import unittest

from metals_client.commands import CommandDispatcher
from metals_client.protocol import StatusUpdate
from metals_client.status import StatusPresenter

from helpers.session import make_session


class TestStatusPresenter(unittest.IsolatedAsyncioTestCase):
    """Tests for StatusPresenter.update()."""

    def setUp(self):
        self.session = make_session()
        self.host = self.session.host
        self.connection = self.session.connection
        self.commands = CommandDispatcher(self.session)
        self.status = StatusPresenter(self.session, self.commands)
        self.item = self.host.status_items[0]

    def test_initial_state(self):
        """Hidden, and clicking toggles the logs until a push names a command."""
        self.assertFalse(self.status.visible)
        self.assertFalse(self.item.visible)
        self.assertEqual(self.item.command, "metals-toggle-logs")

    def test_text_is_always_replaced(self):
        self.status.update(StatusUpdate(text="Compiling", show=True))
        self.status.update(StatusUpdate(text=""))
        self.assertEqual(self.item.text, "")

    def test_show_and_hide(self):
        self.status.update(StatusUpdate(text="Compiling", show=True))
        self.assertTrue(self.item.visible)

        self.status.update(StatusUpdate(text="Done", hide=True))
        self.assertFalse(self.item.visible)
        self.assertFalse(self.status.visible)

    def test_show_wins_over_hide(self):
        self.status.update(StatusUpdate(text="Both", show=True, hide=True))
        self.assertTrue(self.item.visible)

    def test_no_flags_leave_visibility_unchanged(self):
        self.status.update(StatusUpdate(text="a", show=True))
        self.status.update(StatusUpdate(text="b"))
        self.assertTrue(self.item.visible)

        self.status.update(StatusUpdate(text="c", hide=True))
        self.status.update(StatusUpdate(text="d"))
        self.assertFalse(self.item.visible)

    def test_tooltip_persists_when_absent(self):
        self.status.update(StatusUpdate(text="a", tooltip="Build server: bloop"))
        self.status.update(StatusUpdate(text="b"))
        self.assertEqual(self.item.tooltip, "Build server: bloop")

        self.status.update(StatusUpdate(text="c", tooltip="Build server: sbt"))
        self.assertEqual(self.item.tooltip, "Build server: sbt")

    def test_command_absent_clears_action(self):
        self.status.update(StatusUpdate(text="a", command="metals.doctor-run"))
        self.assertEqual(self.item.command, "metals.doctor-run")

        self.status.update(StatusUpdate(text="b"))
        self.assertIsNone(self.item.command)

    def test_command_is_bound_once(self):
        self.status.update(StatusUpdate(text="a", command="build-connect"))
        self.status.update(StatusUpdate(text="b", command="build-connect"))

        self.assertEqual(self.host.registrations.count("build-connect"), 1)
        self.assertTrue(self.commands.is_bound("build-connect"))

    async def test_bound_command_forwards_to_server(self):
        self.status.update(StatusUpdate(text="a", command="build-connect"))

        await self.host.invoke("build-connect")

        self.assertEqual(self.connection.executed, [("build-connect", None)])

    def test_command_known_to_host_is_not_registered_again(self):
        self.host.register_command("metals-doctor-run", lambda: None)

        self.status.update(StatusUpdate(text="a", command="metals-doctor-run"))

        self.assertEqual(self.host.registrations.count("metals-doctor-run"), 1)
        self.assertEqual(self.item.command, "metals-doctor-run")

    def test_session_teardown_hides_item(self):
        self.status.update(StatusUpdate(text="a", show=True))
        for subscription in self.session.subscriptions:
            subscription.dispose()
        self.assertFalse(self.item.visible)


if __name__ == "__main__":
    unittest.main()
