"""Progressive penalty functions for repeated device-switch denials.

Two policies, selected by COOLDOWN_POLICY:

``exponential`` (default)
    Keyed on the ledger's attempt_count. Below the threshold there is no
    cooldown. From the threshold on: base * 2 ** (count - threshold) minutes,
    capped. With the defaults (threshold 5, base 15, cap 240) the 5th denial
    costs 15 minutes, then 30, 60, 120, and 240 for every denial after that.

``levels``
    Keyed on the number of device switches (denials that imposed a
    cooldown) within the tracking window (24h by default), counting the one
    being penalized: the 1st -> level 1 (1 hour), 2nd and 3rd -> level 2
    (6 hours), 4th and later -> level 3 (24 hours).

Both are non-decreasing in their input and bounded.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta

POLICY_EXPONENTIAL = "exponential"
POLICY_LEVELS = "levels"
POLICIES = (POLICY_EXPONENTIAL, POLICY_LEVELS)

# level -> hours
LEVEL_HOURS = {1: 1, 2: 6, 3: 24}


@dataclass(frozen=True)
class CooldownDecision:
    minutes: int
    cooldown_until: datetime
    level: int | None = None
    switch_count: int | None = None


def exponential_minutes(attempt_count: int, threshold: int = 5,
                        base_minutes: int = 15, max_minutes: int = 240) -> int:
    if attempt_count < threshold:
        return 0
    # clamp the exponent so huge counts do not build huge ints
    exponent = min(attempt_count - threshold, 32)
    return min(base_minutes * (2 ** exponent), max_minutes)


def cooldown_level(switch_count: int) -> int:
    if switch_count >= 4:
        return 3
    if switch_count >= 2:
        return 2
    return 1


def level_minutes(level: int) -> int:
    return LEVEL_HOURS[level] * 60


def decide(now: datetime, minutes: int, level: int | None = None,
           switch_count: int | None = None) -> CooldownDecision:
    return CooldownDecision(
        minutes=minutes,
        cooldown_until=now + timedelta(minutes=minutes),
        level=level,
        switch_count=switch_count,
    )
