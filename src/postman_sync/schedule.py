"""
Schedule evaluation: hour-window membership, schedule precedence and
per-target interval gating.

Everything here is pure with respect to the clock: callers pass the hour
(and timestamps) they want evaluated.
"""

from collections.abc import Callable
from collections.abc import Sequence

from postman_sync.models import DEFAULT_INTERVAL_MINUTES
from postman_sync.models import ScheduleOverride
from postman_sync.models import SyncSchedule
from postman_sync.models import TargetWorkspace


def in_window(window: SyncSchedule, hour: int) -> bool:
    """Return True if ``hour`` falls inside the (possibly overnight) window."""
    return window.contains(hour)


def resolve_schedule(
    target: TargetWorkspace, global_schedule: Sequence[SyncSchedule] | None
) -> Sequence[SyncSchedule] | None:
    """Pick the schedule that governs ``target``.

    A non-empty target schedule wins outright; otherwise the global schedule
    applies. Returns None when neither is defined.
    """
    if target.sync_schedule:
        return target.sync_schedule
    if global_schedule:
        return global_schedule
    return None


def matching_window(
    schedule: Sequence[SyncSchedule] | None, hour: int
) -> SyncSchedule | None:
    """Return the first window containing ``hour``, or None."""
    for window in schedule or ():
        if in_window(window, hour):
            return window
    return None


def is_within_schedule(
    target: TargetWorkspace,
    global_schedule: Sequence[SyncSchedule] | None,
    hour: int,
    on_override: Callable[[ScheduleOverride], None] | None = None,
) -> bool:
    """
    Return True if ``target`` may sync at ``hour``.

    When both the target and the global schedule are non-empty,
    ``on_override`` is called once per evaluation, whatever the result.
    Targets with no schedule anywhere are always eligible.
    """
    if target.sync_schedule and global_schedule and on_override is not None:
        on_override(
            ScheduleOverride(
                target_id=target.id,
                tag=target.tag,
                target_schedule=list(target.sync_schedule),
                global_schedule=list(global_schedule),
            )
        )

    schedule = resolve_schedule(target, global_schedule)
    if schedule is None:
        return True
    return matching_window(schedule, hour) is not None


def interval_seconds(
    target: TargetWorkspace, global_schedule: Sequence[SyncSchedule] | None, hour: int
) -> float:
    """Minimum seconds between syncs for ``target`` at ``hour``."""
    window = matching_window(resolve_schedule(target, global_schedule), hour)
    minutes = window.interval_minutes if window else DEFAULT_INTERVAL_MINUTES
    return minutes * 60


def should_sync_target(
    target: TargetWorkspace,
    global_schedule: Sequence[SyncSchedule] | None,
    last_sync: float,
    now: float,
    hour: int,
) -> bool:
    """Interval gate: has enough time passed since ``last_sync`` (epoch seconds)?"""
    return now - last_sync >= interval_seconds(target, global_schedule, hour)
