"""
Shared fakes for the test-suite: a controllable clock, an event recorder
and a store factory seeded with a couple of users.
"""

from datetime import datetime, timedelta, timezone

from acaragraph.store import SQLiteStore

START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start=START):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)
        return self.now


class EventRecorder:
    def __init__(self):
        self.events = []

    def __call__(self, event, payload):
        self.events.append((event, payload))

    def named(self, event):
        return [payload for name, payload in self.events if name == event]

    def clear(self):
        self.events.clear()


def make_store(clock=None):
    """In-memory store with an admin (id 1), a user (id 2) and a second user (id 3)."""
    clock = clock or FakeClock()
    store = SQLiteStore(":memory:")
    store.create_user("Admin", "@admin", "admin", "#FF0000", clock())
    store.create_user("Alice", "@alice", "user", "#FF3333", clock())
    store.create_user("Bob", "@bob", "user", "#CC0000", clock())
    return store
