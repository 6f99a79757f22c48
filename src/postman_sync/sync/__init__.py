"""
The recurring fetch, detect and fan-out loop.
"""

import logging
import threading
import time
from collections.abc import Callable
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import httpx

from postman_sync.api_client import PostmanApiClient
from postman_sync.api_client import fetch_read_only_collection
from postman_sync.config import parse_configuration
from postman_sync.events import EventEmitter
from postman_sync.events import Listener
from postman_sync.events import SyncEvent
from postman_sync.models import LOG_LEVELS
from postman_sync.models import CycleStats
from postman_sync.models import FetchError
from postman_sync.models import PostmanSyncError
from postman_sync.models import ScheduleOverride
from postman_sync.models import SyncConfiguration
from postman_sync.models import TargetWorkspace
from postman_sync.rate_limiter import CredentialRotator
from postman_sync.schedule import is_within_schedule
from postman_sync.schedule import should_sync_target
from postman_sync.storage import SyncStorage
from postman_sync.sync.targets import ClientFactory
from postman_sync.sync.targets import record_auto_created
from postman_sync.sync.targets import upsert_target
from postman_sync.watcher import CollectionWatcher

Fetcher = Callable[[str], dict[str, Any]]

# Expected per-target failures, logged without a traceback.
_TARGET_ERRORS = (PostmanSyncError, httpx.HTTPError, OSError)


class PostmanSync:
    """Main synchronization engine.

    Owns all run state: the change watcher, the ordered map of target
    records (copied from the configuration, so the auto-created
    ``collection_uid`` is only ever written here), one key rotator per
    target, the last-sync timestamps and the in-flight guard.
    """

    def __init__(
        self,
        config: SyncConfiguration | Mapping[str, Any],
        *,
        fetcher: Fetcher | None = None,
        client_factory: ClientFactory | None = None,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ):
        self.config = parse_configuration(config)
        if logger is None:
            logging.getLogger("postman_sync").setLevel(LOG_LEVELS[self.config.log_level])
        self.logger = logger or logging.getLogger(__name__)

        self.fetcher = fetcher or fetch_read_only_collection
        self.client_factory = client_factory or PostmanApiClient
        self.clock = clock or datetime.now
        self.events = EventEmitter()

        self.storage = SyncStorage(self.config.storage_dir, self.config.collection_id)
        self.watcher = CollectionWatcher(self.storage, self.config.enable_json_diff)
        self.watcher.load_previous_state()

        self.targets: dict[str, TargetWorkspace] = {}
        self.rotators: dict[str, CredentialRotator] = {}
        for target in self.config.target_workspaces:
            self.targets[target.id] = target.model_copy(deep=True)
            self.rotators[target.id] = CredentialRotator(target.api_keys)

        self.last_sync_times: dict[str, float] = {}
        self.running = False
        self._cycle_lock = threading.Lock()
        self._wakeup = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_syncing(self) -> bool:
        return self._cycle_lock.locked()

    # ------------------------------------------------------------------ #
    # Listener registration                                                #
    # ------------------------------------------------------------------ #

    def on(self, event: SyncEvent | str, listener: Listener) -> Listener:
        return self.events.on(event, listener)

    def off(self, event: SyncEvent | str, listener: Listener) -> None:
        self.events.off(event, listener)

    # ------------------------------------------------------------------ #
    # Loop control                                                         #
    # ------------------------------------------------------------------ #

    @property
    def interval_seconds(self) -> float:
        return self.config.min_interval_ms / 1000

    def start(self) -> None:
        """Run the loop on a background thread. No-op if already running."""
        if self.running:
            return
        self.running = True
        # Each loop owns its wakeup event, so a loop stopped mid-cycle still
        # exits after a restart.
        self._wakeup = threading.Event()
        self.logger.info("PostmanSync started")
        self._thread = threading.Thread(
            target=self._loop, args=(self._wakeup,), name="postman-sync", daemon=True
        )
        self._thread.start()

    def run_forever(self) -> None:
        """Run the loop on the calling thread until stop() is called."""
        if self.running:
            return
        self.running = True
        self._wakeup = threading.Event()
        self.logger.info("PostmanSync started")
        self._loop(self._wakeup)

    def stop(self) -> None:
        """Prevent the next tick. A cycle already in flight runs to completion."""
        if not self.running:
            return
        self.running = False
        self._wakeup.set()
        self.logger.info("PostmanSync stopped")

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _loop(self, wakeup: threading.Event) -> None:
        # Ticks fire on a fixed grid; ticks whose time passed while a cycle
        # was still running are dropped by the overlap guard, not queued.
        next_tick = time.monotonic()
        while not wakeup.is_set():
            self.tick()
            next_tick += self.interval_seconds
            now = time.monotonic()
            while next_tick <= now:
                self.logger.warning("Sync already in progress, skipping this loop")
                next_tick += self.interval_seconds
            if wakeup.wait(next_tick - now):
                break

    def tick(self) -> CycleStats | None:
        """
        Run one cycle unless another is in flight, on any thread.

        Returns the cycle's stats, or None if the tick was skipped. Unexpected
        errors are logged and emitted with context "syncLoop".
        """
        if not self._cycle_lock.acquire(blocking=False):
            self.logger.warning("Sync already in progress, skipping this loop")
            return None

        try:
            return self.run_cycle()
        except Exception as e:
            self.logger.exception("Sync failed")
            self.events.emit(SyncEvent.ERROR, e, "syncLoop")
            return None
        finally:
            self._cycle_lock.release()

    # ------------------------------------------------------------------ #
    # One cycle                                                            #
    # ------------------------------------------------------------------ #

    def is_target_within_schedule(self, target: TargetWorkspace) -> bool:
        return is_within_schedule(
            target,
            self.config.sync_schedule,
            self.clock().hour,
            on_override=self._emit_override,
        )

    def should_sync_target(self, target: TargetWorkspace) -> bool:
        now = self.clock()
        return should_sync_target(
            target,
            self.config.sync_schedule,
            self.last_sync_times.get(target.id, 0.0),
            now.timestamp(),
            now.hour,
        )

    def _emit_override(self, override: ScheduleOverride) -> None:
        self.events.emit(SyncEvent.SCHEDULE_OVERRIDE, override)

    def fetch_collection(self) -> dict[str, Any]:
        self.logger.info("Fetching collection via read-only public URL...")
        return self.fetcher(self.config.read_only_url)

    def run_cycle(self) -> CycleStats:
        """Fetch the source, and push it to every eligible target if it changed."""
        stats = CycleStats()
        self.logger.info("Running sync cycle...")
        self.events.emit(SyncEvent.SYNC_START)

        try:
            collection = self.fetch_collection()
        except (FetchError, httpx.HTTPError) as e:
            self.logger.error(f"Failed to fetch collection: {e}")
            self.events.emit(SyncEvent.ERROR, e, "fetchCollection")
            stats.errors += 1
            return stats

        detection = self.watcher.detect_change(collection)
        if not detection.changed:
            self.logger.info("No change detected in collection.")
            self.events.emit(SyncEvent.NO_CHANGE)
            return stats

        stats.changed = True
        if detection.initial:
            self.logger.info("No previous collection state, treating as changed.")
        else:
            self.logger.info("Collection changed.")
        if detection.diff is not None:
            self.logger.debug(f"Collection diff has {len(detection.diff)} operation(s)")
        self.events.emit(SyncEvent.CHANGE, collection, detection.diff)

        if self.config.dry_run:
            self.logger.info("[DRY RUN] Skipping target workspaces")
            return stats

        for target in self.targets.values():
            self._sync_target(target, collection, stats)

        self.logger.info("Sync to all targets completed.")
        self.events.emit(SyncEvent.SYNC_COMPLETE)
        return stats

    def _sync_target(
        self, target: TargetWorkspace, collection: dict[str, Any], stats: CycleStats
    ) -> None:
        if not target.enabled:
            self.logger.info(f"Skipping disabled target {target.label}")
            stats.skipped += 1
            return

        if not self.is_target_within_schedule(target):
            self.logger.info(f"Target {target.label} is outside its sync schedule")
            stats.skipped += 1
            return

        if not self.should_sync_target(target):
            self.logger.info(f"Target {target.label} skipped due to sync interval")
            stats.skipped += 1
            return

        # Recorded before the upsert so a failing target is not retried every tick.
        self.last_sync_times[target.id] = self.clock().timestamp()

        try:
            result = upsert_target(
                target, collection, self.rotators[target.id], self.client_factory
            )
            record_auto_created(
                target, result, self.storage, self.config.read_only_url, self.logger
            )
        except _TARGET_ERRORS as e:
            self.logger.error(f"Failed to sync to target {target.label}: {e}")
            self._target_failed(target, e, stats)
            return
        except Exception as e:
            self.logger.exception(f"Unexpected error syncing to target {target.label}")
            self._target_failed(target, e, stats)
            return

        if result.action == "insert":
            stats.inserted += 1
            event = SyncEvent.INSERT
        else:
            stats.updated += 1
            event = SyncEvent.UPDATE
        self.logger.info(f"Synced to target {target.label}: {result.action}")
        self.events.emit(event, target.id, collection)

    def _target_failed(
        self, target: TargetWorkspace, error: Exception, stats: CycleStats
    ) -> None:
        stats.errors += 1
        self.events.emit(SyncEvent.ERROR, error, f"syncTarget:{target.id}")


__all__ = ["PostmanSync"]
