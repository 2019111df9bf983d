# ============================================
#   Acaragraph — Presence Reconciler
#   Periodic "online" → "away" sweep + presence rebroadcast
# ============================================

from acaragraph.config import PRESENCE_SWEEP_INTERVAL_SECONDS, PRESENCE_STALE_SECONDS
from acaragraph.clock import utcnow
from acaragraph.errors import StoreError
from acaragraph.logger import log_info, log_exception


class PresenceReconciler:
    """
    Every `interval` seconds:
      1) demote stale "online" rows to "away" in the store (one UPDATE)
      2) rebroadcast presence from the in-memory registry

    The broadcast never reads the demoted rows: a user holding a live
    connection stays in the snapshot even if the store says "away".
    """

    def __init__(self, store, core, interval=PRESENCE_SWEEP_INTERVAL_SECONDS,
                 threshold=PRESENCE_STALE_SECONDS, clock=utcnow):
        self._store = store
        self._core = core
        self.interval = interval
        self.threshold = threshold
        self._clock = clock
        self._running = False

    @property
    def running(self):
        return self._running

    def run_once(self) -> int:
        """One sweep + broadcast. Returns the number of demoted rows."""
        demoted = 0
        try:
            demoted = self._store.sweep_stale_presence(self.threshold, self._clock())
            if demoted:
                log_info("reconciler", f"{demoted} stale user(s) demoted to away.")
        except StoreError:
            log_exception("reconciler", "Presence sweep failed; retrying next cycle.")

        self._core.broadcast_presence()
        return demoted

    def run_forever(self, sleep):
        """
        Loop until stop(). `sleep(seconds)` is injected: socketio.sleep in
        production, a fake in tests.
        """
        self._running = True
        while self._running:
            sleep(self.interval)
            if not self._running:
                break
            try:
                self.run_once()
            except Exception as e:
                log_exception("reconciler", f"Error during reconcile cycle: {e}")

    def start(self, socketio):
        """Start the loop as a Socket.IO background task."""
        log_info(
            "reconciler",
            f"Starting presence reconciler (interval={self.interval}s, stale={self.threshold}s).",
        )
        self._running = True
        return socketio.start_background_task(self.run_forever, socketio.sleep)

    def stop(self):
        self._running = False
