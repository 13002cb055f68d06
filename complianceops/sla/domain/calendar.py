"""
SLA Calendar
============

Business-hours arithmetic and per-service SLA policies.

Deadlines are counted in working hours: Monday to Friday, 09:00 to 18:00 in
the evaluation time zone unless configured otherwise. The resolution window
of a service is scaled by the request's priority.
"""

from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone, tzinfo
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional

from complianceops.config import Priority

DEFAULT_RESOLUTION_HOURS = 48.0

PRIORITY_MULTIPLIERS: Mapping[Priority, float] = MappingProxyType({
    Priority.URGENT: 0.25,
    Priority.HIGH: 0.5,
    Priority.MEDIUM: 1.0,
    Priority.LOW: 1.5,
})


@dataclass(frozen=True)
class BusinessCalendar:
    """Working days (Monday is 0) and opening hours in one time zone."""
    tz: tzinfo = timezone.utc
    start_hour: int = 9
    end_hour: int = 18
    work_days: FrozenSet[int] = frozenset({0, 1, 2, 3, 4})

    def __post_init__(self):
        if not 0 <= self.start_hour < self.end_hour <= 23:
            raise ValueError("business hours need 0 <= start_hour < end_hour <= 23")
        if not self.work_days or not self.work_days <= set(range(7)):
            raise ValueError("work_days must be a non-empty subset of 0..6")

    def _opening(self, day) -> datetime:
        return datetime.combine(day, time(self.start_hour), tzinfo=self.tz)

    def _closing(self, day) -> datetime:
        return datetime.combine(day, time(self.end_hour), tzinfo=self.tz)

    def _next_opening(self, current: datetime) -> datetime:
        day = current.date() + timedelta(days=1)
        while day.weekday() not in self.work_days:
            day += timedelta(days=1)
        return self._opening(day)

    def add_business_hours(self, start: datetime, hours: float) -> datetime:
        """
        Instant ``hours`` working hours after ``start``.

        Time outside opening hours does not count; a start outside them
        begins counting at the next opening. Returns UTC.
        """
        current = start.astimezone(self.tz)
        remaining = timedelta(hours=hours)

        while remaining > timedelta(0):
            day = current.date()
            if day.weekday() not in self.work_days or current >= self._closing(day):
                current = self._next_opening(current)
                continue

            current = max(current, self._opening(day))
            available = self._closing(day) - current
            if remaining <= available:
                current += remaining
                break
            remaining -= available
            current = self._next_opening(current)

        return current.astimezone(timezone.utc)

    def business_hours_between(self, start: datetime, end: datetime) -> float:
        """Working hours in [start, end), rounded to 0.1; 0 when end <= start."""
        if end <= start:
            return 0.0

        current = start.astimezone(self.tz)
        end = end.astimezone(self.tz)
        total = timedelta(0)

        while current < end:
            day = current.date()
            if day.weekday() in self.work_days:
                window_start = max(current, self._opening(day))
                window_end = min(end, self._closing(day))
                if window_end > window_start:
                    total += window_end - window_start
            current = datetime.combine(day + timedelta(days=1), time(0), tzinfo=self.tz)

        return round(total.total_seconds() / 3600, 1)


@dataclass(frozen=True)
class SlaPolicy:
    """Resolution window of one service, before the priority multiplier."""
    resolution_hours: float = DEFAULT_RESOLUTION_HOURS
    business_hours: bool = True

    def __post_init__(self):
        if self.resolution_hours <= 0:
            raise ValueError("resolution_hours must be positive")

    def hours_for(self, priority: Priority) -> float:
        return self.resolution_hours * PRIORITY_MULTIPLIERS[Priority(priority)]


@dataclass(frozen=True)
class SlaDeadlineCalculator:
    """
    Deadline for a new request from its service's policy.

    Services without a policy fall back to ``default``; with no default
    they get no deadline at all.
    """
    policies: Mapping[str, SlaPolicy] = field(default_factory=dict)
    calendar: BusinessCalendar = field(default_factory=BusinessCalendar)
    default: Optional[SlaPolicy] = None

    def policy_for(self, service_key: str) -> Optional[SlaPolicy]:
        return self.policies.get(service_key, self.default)

    def deadline_for(
        self,
        service_key: str,
        priority: Priority,
        created_at: datetime,
    ) -> Optional[datetime]:
        policy = self.policy_for(service_key)
        if policy is None:
            return None

        hours = policy.hours_for(priority)
        if policy.business_hours:
            return self.calendar.add_business_hours(created_at, hours)
        return (created_at + timedelta(hours=hours)).astimezone(timezone.utc)
