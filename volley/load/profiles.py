"""
Per-user start and stop times for each load profile.

build_schedule() is pure: it maps (profile, users, ramp-up, duration) to one
UserSlot per virtual user. Offsets are seconds relative to the run start.

Profiles (user i is 0-indexed, n users):
- constant, ramp_up: start i * ramp_up / n
- spike: everyone starts at ramp_up
- step: 5 contiguous groups, group k starts at k * ramp_up / 5
- wave: 4 contiguous groups, group g starts at g * ramp_up / 4 plus
  0.1s per position inside the group
- ramp_down: everyone starts at 0, user i stops i * duration / n early
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from volley.load.config import LoadProfile

STEP_GROUPS = 5
WAVE_GROUPS = 4
WAVE_PHASE_SECONDS = 0.1


@dataclass(frozen=True)
class UserSlot:
    """When one virtual user starts and stops, relative to the run start."""

    index: int
    start_delay: float
    stop_at: float


def group_of(index: int, users: int, groups: int) -> tuple[int, int]:
    """
    Group and position of a user when `users` are split into `groups`
    contiguous near-equal groups (earlier groups get the remainder).
    """
    groups = max(1, min(groups, users))
    base, extra = divmod(users, groups)
    start = 0
    for group in range(groups):
        size = base + (1 if group < extra else 0)
        if index < start + size:
            return group, index - start
        start += size
    raise IndexError(f"user index {index} out of range for {users} users")


def start_delay(
    profile: LoadProfile, index: int, users: int, ramp_up_seconds: float
) -> float:
    """Seconds after the run start at which user `index` begins."""
    if users <= 0:
        raise ValueError("users must be >= 1")
    if profile in (LoadProfile.CONSTANT, LoadProfile.RAMP_UP):
        return index * ramp_up_seconds / users
    if profile == LoadProfile.SPIKE:
        return ramp_up_seconds
    if profile == LoadProfile.STEP:
        group, _ = group_of(index, users, STEP_GROUPS)
        return group * ramp_up_seconds / STEP_GROUPS
    if profile == LoadProfile.WAVE:
        group, phase = group_of(index, users, WAVE_GROUPS)
        return group * ramp_up_seconds / WAVE_GROUPS + phase * WAVE_PHASE_SECONDS
    if profile == LoadProfile.RAMP_DOWN:
        return 0.0
    raise ValueError(f"unsupported profile: {profile}")


def build_schedule(
    profile: LoadProfile,
    users: int,
    ramp_up_seconds: float,
    duration_seconds: float,
) -> List[UserSlot]:
    """One slot per user, ordered by index."""
    slots: List[UserSlot] = []
    for index in range(users):
        stop_at = duration_seconds
        if profile == LoadProfile.RAMP_DOWN:
            stop_at = duration_seconds - index * duration_seconds / users
        slots.append(
            UserSlot(
                index=index,
                start_delay=start_delay(profile, index, users, ramp_up_seconds),
                stop_at=stop_at,
            )
        )
    return slots
