"""
Presence registry: admission order, idempotent eviction, multiple
sessions per user and best-effort status write-through.
"""

import unittest
from unittest.mock import Mock

from acaragraph.errors import StoreError
from acaragraph.events import PRESENCE_CHANGED
from acaragraph.presence import PresenceRegistry
from support import EventRecorder, FakeClock, make_store


def profile(store, user_id):
    return store.get_public_profile(user_id)


class TestPresenceRegistry(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.store = make_store(self.clock)
        self.events = EventRecorder()
        self.registry = PresenceRegistry(self.store, emit=self.events, clock=self.clock)

    def test_snapshot_in_admission_order(self):
        self.registry.admit("c1", 2, profile(self.store, 2))
        self.registry.admit("c2", 3, profile(self.store, 3))

        snapshot = self.registry.snapshot()

        self.assertEqual([s["id"] for s in snapshot], [2, 3])
        self.assertEqual(snapshot[0], {
            "id": 2,
            "nickname": "Alice",
            "avatar_color": "#FF3333",
            "role": "user",
            "status": "online",
        })

    def test_admit_broadcasts_flat_snapshot(self):
        self.registry.admit("c1", 2, profile(self.store, 2))
        self.registry.admit("c2", 3, profile(self.store, 3))

        broadcasts = self.events.named(PRESENCE_CHANGED)
        self.assertEqual(len(broadcasts), 2)
        self.assertEqual([s["id"] for s in broadcasts[-1]], [2, 3])

    def test_admit_marks_user_online(self):
        self.clock.advance(45)
        self.registry.admit("c1", 2, profile(self.store, 2))

        user = self.store.get_user(2)
        self.assertEqual(user["status"], "online")
        self.assertEqual(user["last_seen"], self.clock())

    def test_same_user_twice_is_two_entries(self):
        self.registry.admit("tab-1", 2, profile(self.store, 2))
        self.registry.admit("tab-2", 2, profile(self.store, 2))

        self.assertEqual([s["id"] for s in self.registry.snapshot()], [2, 2])
        self.assertEqual(self.registry.connections_for_user(2), ["tab-1", "tab-2"])

    def test_reauth_overwrites_in_place(self):
        self.registry.admit("c1", 2, profile(self.store, 2))
        self.registry.admit("c2", 3, profile(self.store, 3))
        self.registry.admit("c1", 1, profile(self.store, 1))

        self.assertEqual([s["id"] for s in self.registry.snapshot()], [1, 3])
        self.assertEqual(len(self.registry), 2)

    def test_evict_marks_offline_and_broadcasts(self):
        self.registry.admit("c1", 2, profile(self.store, 2))
        self.events.clear()

        session = self.registry.evict("c1")

        self.assertEqual(session.user_id, 2)
        self.assertNotIn("c1", self.registry)
        self.assertEqual(self.store.get_user(2)["status"], "offline")
        self.assertEqual(self.events.named(PRESENCE_CHANGED), [[]])

    def test_evict_twice_is_a_noop(self):
        self.registry.admit("c1", 2, profile(self.store, 2))
        self.registry.evict("c1")
        self.events.clear()
        self.store.update_user_status(2, "away", self.clock())

        self.assertIsNone(self.registry.evict("c1"))
        self.assertEqual(self.events.events, [])
        self.assertEqual(self.store.get_user(2)["status"], "away")

    def test_evict_unknown_connection(self):
        self.assertIsNone(self.registry.evict("never-seen"))
        self.assertEqual(self.events.events, [])

    def test_store_failure_does_not_block_admission_or_eviction(self):
        store = Mock()
        store.update_user_status.side_effect = StoreError("disk I/O error")
        registry = PresenceRegistry(store, emit=self.events, clock=self.clock)

        registry.admit("c1", 2, {"nickname": "Alice", "avatar_color": "#FF3333", "role": "user"})
        self.assertIn("c1", registry)

        registry.evict("c1")
        self.assertNotIn("c1", registry)
        self.assertEqual(len(self.events.named(PRESENCE_CHANGED)), 2)

    def test_emit_failure_is_swallowed(self):
        registry = PresenceRegistry(self.store, emit=Mock(side_effect=RuntimeError("socket gone")), clock=self.clock)
        registry.admit("c1", 2, profile(self.store, 2))
        self.assertIn("c1", registry)

    def test_refresh_profile_updates_every_session_of_user(self):
        self.registry.admit("tab-1", 2, profile(self.store, 2))
        self.registry.admit("tab-2", 2, profile(self.store, 2))
        self.registry.admit("c3", 3, profile(self.store, 3))

        touched = self.registry.refresh_profile(2, {"role": "admin"})

        self.assertEqual(touched, 2)
        self.assertEqual([s["role"] for s in self.registry.snapshot()], ["admin", "admin", "user"])


if __name__ == "__main__":
    unittest.main()
