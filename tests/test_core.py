"""
Chat core facade: auth / disconnect / send_message / snapshot, event
emission and admin propagation.
"""

import unittest
from datetime import timedelta

from acaragraph.core import ChatCore
from acaragraph.errors import ModerationError, NotFoundError, ValidationError
from acaragraph.events import ADMIN_ACTION, MESSAGE_CREATED, PRESENCE_CHANGED
from support import EventRecorder, FakeClock, make_store


class TestChatCore(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.store = make_store(self.clock)
        self.events = EventRecorder()
        self.core = ChatCore(self.store, emit=self.events, clock=self.clock)

    def test_auth_then_snapshot(self):
        self.core.auth("c1", 2)
        self.core.auth("c2", 3)

        self.assertEqual([s["nickname"] for s in self.core.get_presence_snapshot()], ["Alice", "Bob"])
        self.assertEqual(len(self.events.named(PRESENCE_CHANGED)), 2)

    def test_auth_accepts_numeric_strings(self):
        session = self.core.auth("c1", "2")
        self.assertEqual(session.user_id, 2)

    def test_auth_rejects_bad_ids(self):
        for bad in (None, "", "abc", 0, -3):
            with self.assertRaises(ValidationError):
                self.core.auth("c1", bad)
        with self.assertRaises(ValidationError):
            self.core.auth("", 2)

    def test_auth_rejects_bool_and_fractional_ids(self):
        for bad in (True, False, 1.9, 2.5, float("nan")):
            with self.assertRaises(ValidationError):
                self.core.auth("c1", bad)
        self.assertEqual(self.core.get_presence_snapshot(), [])

    def test_auth_accepts_integral_float(self):
        session = self.core.auth("c1", 2.0)
        self.assertEqual(session.user_id, 2)

    def test_auth_unknown_user(self):
        with self.assertRaises(NotFoundError):
            self.core.auth("c1", 404)
        self.assertEqual(self.core.get_presence_snapshot(), [])

    def test_banned_user_can_still_observe(self):
        self.store.set_banned(2, True)
        self.core.auth("c1", 2)

        self.assertEqual([s["id"] for s in self.core.get_presence_snapshot()], [2])
        with self.assertRaises(ModerationError):
            self.core.send_message(2, "hi")

    def test_scenario_d_two_connections_same_user(self):
        self.core.auth("c1", 2)
        self.core.auth("c2", 2)
        self.assertEqual([s["id"] for s in self.core.get_presence_snapshot()], [2, 2])

    def test_disconnect_twice(self):
        self.core.auth("c1", 2)
        self.core.disconnect("c1")
        emitted = len(self.events.events)

        self.assertIsNone(self.core.disconnect("c1"))
        self.assertEqual(len(self.events.events), emitted)
        self.assertEqual(self.core.get_presence_snapshot(), [])

    def test_send_emits_message_created(self):
        self.core.auth("c1", 2)
        payload = self.core.send_message(2, "  hello  ")

        self.assertEqual(self.events.named(MESSAGE_CREATED), [payload])
        self.assertEqual(payload["text"], "hello")

    def test_failed_send_emits_nothing(self):
        with self.assertRaises(ValidationError):
            self.core.send_message(2, "")
        self.assertEqual(self.events.named(MESSAGE_CREATED), [])

    def test_send_completes_after_sender_disconnects(self):
        self.core.auth("c1", 2)
        self.core.auth("c2", 3)
        self.core.disconnect("c1")

        payload = self.core.send_message(2, "still delivered")

        self.assertEqual(self.events.named(MESSAGE_CREATED)[-1], payload)

    def test_admin_changes_apply_on_next_send(self):
        self.core.auth("c1", 2)
        self.core.send_message(2, "first")

        self.store.set_muted_until(2, self.clock() + timedelta(minutes=2))
        with self.assertRaises(ModerationError):
            self.core.send_message(2, "second")

        self.clock.advance(121)
        self.core.send_message(2, "third")
        self.assertEqual(self.store.get_user(2)["message_count"], 2)

    def test_history_shape(self):
        self.core.send_message(2, "one")
        self.clock.advance(5)
        self.core.send_message(3, "two")

        history = self.core.get_history()

        self.assertEqual([m["text"] for m in history], ["one", "two"])
        self.assertEqual(history[1]["user"]["nickname"], "Bob")
        self.assertEqual(history[1]["timestamp"], "2026-01-01T12:00:05Z")

    def test_sent_timestamp_matches_history_with_subsecond_clock(self):
        self.clock.now = self.clock.now.replace(microsecond=654321)

        sent = self.core.send_message(2, "hello")
        stored = self.core.get_history()[-1]

        self.assertEqual(stored["id"], sent["id"])
        self.assertEqual(sent["timestamp"], stored["timestamp"])
        self.assertEqual(sent["timestamp"], "2026-01-01T12:00:00Z")
        self.assertEqual(self.events.named(MESSAGE_CREATED)[-1]["timestamp"], stored["timestamp"])

    def test_notify_user_changed_refreshes_live_sessions(self):
        self.core.auth("c1", 2)
        self.events.clear()
        self.store.set_role(2, "admin")

        touched = self.core.notify_user_changed(2, "make_admin", 1)

        self.assertEqual(touched, 1)
        self.assertEqual(self.core.get_presence_snapshot()[0]["role"], "admin")
        action = self.events.named(ADMIN_ACTION)[0]
        self.assertEqual((action["userId"], action["action"], action["byAdminId"]), (2, "make_admin", 1))
        self.assertEqual(len(self.events.named(PRESENCE_CHANGED)), 1)

    def test_notify_offline_user_skips_presence_broadcast(self):
        self.core.notify_user_changed(3, "ban", 1)
        self.assertEqual(len(self.events.named(ADMIN_ACTION)), 1)
        self.assertEqual(self.events.named(PRESENCE_CHANGED), [])


if __name__ == "__main__":
    unittest.main()
