"""
Watering Schedule Manager
=========================
Per-garden watering schedule list, upcoming subset, current AI decision and
decision statistics.

Ordering rules:
- ``refresh`` replaces the lists only if its request sequence number is newer
  than the last applied write, so a slow older refresh never overwrites newer data.
- Mutation confirmations are merged per entry and only ever move an entry
  forward: a COMPLETED / SKIPPED / CANCELLED entry is never shown as PENDING
  again and a deleted entry never reappears.
- After ``close()`` every late response is ignored.
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional

from garden_monitor.domain.exceptions import (
    ConflictError,
    RecommendationUnavailable,
    ValidationError,
)
from garden_monitor.domain.watering import (
    ScheduleDraft,
    WateringDecision,
    WateringSchedule,
    WateringStats,
    ensure_transition,
)
from garden_monitor.enums import AIConnectionState, ScheduleStatus
from garden_monitor.services.ai_gateway import DEFAULT_STATS_DAYS, AIDecisionGateway
from garden_monitor.services.protocols import ScheduleRepository
from garden_monitor.utils.concurrency import RequestSequencer, call_with_timeout
from garden_monitor.utils.time import coerce_datetime, utc_now
from infrastructure.logging.audit import AuditLogger

logger = logging.getLogger(__name__)

DEFAULT_UPCOMING_LIMIT = 10


def _schedule_key(schedule: WateringSchedule) -> tuple[datetime, int]:
    return (schedule.scheduled_at, schedule.id)


class WateringScheduleManager:
    """Schedule state and mutations for one garden."""

    def __init__(
        self,
        garden_id: int,
        repository: ScheduleRepository,
        gateway: AIDecisionGateway,
        *,
        timeout_s: float = 10.0,
        upcoming_limit: int = DEFAULT_UPCOMING_LIMIT,
        stats_days: int = DEFAULT_STATS_DAYS,
        audit: AuditLogger | None = None,
        decision_input: Callable[[], Mapping[str, float]] | None = None,
    ):
        self.garden_id = garden_id
        self.repository = repository
        self.gateway = gateway
        self.timeout_s = float(timeout_s)
        self.upcoming_limit = max(1, int(upcoming_limit))
        self.stats_days = int(stats_days)
        self.audit = audit
        self._decision_input = decision_input

        self._sequencer = RequestSequencer()
        self._schedules: list[WateringSchedule] = []
        self._upcoming: list[WateringSchedule] = []
        self._decision: Optional[WateringDecision] = None
        self._stats: Optional[WateringStats] = None
        self._error: Optional[str] = None
        self._last_refreshed: Optional[datetime] = None
        self._in_flight: set[int] = set()
        self._deleted: set[int] = set()
        self._closed = False

    # ------------------------------------------------------------------ #
    # Read-only views
    # ------------------------------------------------------------------ #

    @property
    def schedules(self) -> list[WateringSchedule]:
        return list(self._schedules)

    @property
    def upcoming(self) -> list[WateringSchedule]:
        return list(self._upcoming)

    @property
    def current_decision(self) -> Optional[WateringDecision]:
        return self._decision

    @property
    def stats(self) -> Optional[WateringStats]:
        return self._stats

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def last_refreshed(self) -> Optional[datetime]:
        return self._last_refreshed

    @property
    def in_flight(self) -> frozenset[int]:
        return frozenset(self._in_flight)

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self, schedule_id: int) -> Optional[WateringSchedule]:
        for schedule in self._schedules:
            if schedule.id == schedule_id:
                return schedule
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "schedules": [s.to_dict() for s in self._schedules],
            "upcoming": [s.to_dict() for s in self._upcoming],
            "current_decision": self._decision.to_dict() if self._decision else None,
            "stats": self._stats.to_dict() if self._stats else None,
            "error": self._error,
            "last_refreshed": self._last_refreshed.isoformat() if self._last_refreshed else None,
            "in_flight": sorted(self._in_flight),
        }

    # ------------------------------------------------------------------ #
    # Refresh
    # ------------------------------------------------------------------ #

    async def refresh(self) -> bool:
        """Reload schedules, upcoming entries, decision and statistics.

        Returns False when the result was superseded by a newer write and
        discarded.

        Raises:
            UpstreamUnavailable: the schedule lists could not be fetched
        """
        seq = self._sequencer.next()
        include_decision = self.gateway.is_connected
        calls = [
            call_with_timeout(
                self.repository.list_by_garden(self.garden_id),
                self.timeout_s,
                operation=f"Schedule list for garden {self.garden_id}",
            ),
            call_with_timeout(
                self.repository.get_upcoming(self.garden_id, self.upcoming_limit),
                self.timeout_s,
                operation=f"Upcoming schedules for garden {self.garden_id}",
            ),
            self.gateway.get_stats(self.garden_id, self.stats_days),
        ]
        if include_decision:
            calls.append(self.gateway.get_decision(self.garden_id, self._current_input()))

        results = await asyncio.gather(*calls, return_exceptions=True)
        schedules, upcoming, stats = results[0], results[1], results[2]
        decision = results[3] if include_decision else None

        for extra, label in ((stats, "statistics"), (decision, "decision")):
            if isinstance(extra, BaseException):
                logger.warning("Refreshing %s for garden %s failed: %s", label, self.garden_id, extra)

        failure = next((r for r in (schedules, upcoming) if isinstance(r, BaseException)), None)
        if failure is not None:
            if not self._closed and self._sequencer.is_current(seq):
                self._error = str(failure) or failure.__class__.__name__
            logger.warning("Refreshing schedules for garden %s failed: %s", self.garden_id, failure)
            raise failure

        if self._closed or not self._sequencer.try_apply(seq):
            logger.debug("Discarding superseded schedule refresh #%s for garden %s", seq, self.garden_id)
            return False

        self._schedules = sorted(self._merge(schedules), key=_schedule_key)
        self._upcoming = sorted(
            (s for s in self._merge(upcoming) if s.is_pending), key=_schedule_key
        )[: self.upcoming_limit]
        if isinstance(stats, WateringStats):
            self._stats = stats
        if isinstance(decision, WateringDecision):
            self._decision = decision
        self._error = None
        self._last_refreshed = utc_now()
        return True

    def _merge(self, incoming: Iterable[WateringSchedule]) -> list[WateringSchedule]:
        local = {s.id: s for s in self._schedules}
        merged = []
        for schedule in incoming or []:
            if schedule.id in self._deleted:
                continue
            held = local.get(schedule.id)
            if held is not None and held.status.is_terminal and schedule.is_pending:
                schedule = held
            merged.append(schedule)
        return merged

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    async def create(
        self,
        scheduled_at: datetime | str,
        amount: float | None = None,
        notes: str | None = None,
    ) -> WateringSchedule:
        """Create a PENDING schedule entry.

        Raises:
            ValidationError: unparsable ``scheduled_at`` or negative ``amount``
        """
        draft = ScheduleDraft(
            scheduled_at=self._parse_time(scheduled_at),
            amount=self._parse_amount(amount),
            notes=notes or "",
        )
        return await self._create(draft, auto=False)

    async def auto_generate(self, snapshot: Mapping[str, float] | None = None) -> WateringSchedule:
        """Create an entry from a fresh AI decision.

        Raises:
            RecommendationUnavailable: the AI service is disconnected
        """
        if await self.gateway.wait_for_probe() is not AIConnectionState.CONNECTED:
            raise RecommendationUnavailable(
                "AI recommendations are unavailable; schedule watering manually",
                detail={"garden_id": self.garden_id, "ai_state": self.gateway.state.value},
            )

        decision = await self.get_decision(snapshot)
        draft = ScheduleDraft(
            scheduled_at=utc_now(),
            amount=max(0.0, float(decision.recommended_amount)),
            notes="",
            reason="; ".join(decision.reasons) or decision.decision,
        )
        return await self._create(draft, auto=True)

    async def _create(self, draft: ScheduleDraft, *, auto: bool) -> WateringSchedule:
        action = "schedule.auto_generate" if auto else "schedule.create"
        endpoint = self.repository.auto_generate if auto else self.repository.create
        seq = self._sequencer.next()
        try:
            created = await call_with_timeout(
                endpoint(self.garden_id, draft),
                self.timeout_s,
                operation=f"{action} for garden {self.garden_id}",
            )
        except Exception as exc:
            self._audit(action, f"garden:{self.garden_id}", error=exc)
            raise

        self._apply_entry(created, seq)
        logger.info("Created watering schedule %s for garden %s at %s", created.id, self.garden_id, created.scheduled_at)
        self._audit(action, f"schedule:{created.id}", amount=created.amount)
        return created

    async def complete(self, schedule_id: int) -> WateringSchedule:
        return await self._transition(schedule_id, ScheduleStatus.COMPLETED)

    async def skip(self, schedule_id: int) -> WateringSchedule:
        return await self._transition(schedule_id, ScheduleStatus.SKIPPED)

    async def _transition(self, schedule_id: int, target: ScheduleStatus) -> WateringSchedule:
        if schedule_id in self._in_flight:
            raise ConflictError(
                f"Schedule {schedule_id} already has a transition in progress",
                detail={"schedule_id": schedule_id, "target": target.value},
            )
        current = self.get(schedule_id)
        if current is not None:
            ensure_transition(current, target)

        endpoint = self.repository.complete if target is ScheduleStatus.COMPLETED else self.repository.skip
        action = f"schedule.{target.value.lower()}"
        seq = self._sequencer.next()
        self._in_flight.add(schedule_id)
        try:
            updated = await call_with_timeout(
                endpoint(schedule_id),
                self.timeout_s,
                operation=f"{action} {schedule_id}",
            )
        except Exception as exc:
            self._audit(action, f"schedule:{schedule_id}", error=exc)
            raise
        finally:
            self._in_flight.discard(schedule_id)

        self._apply_entry(updated, seq)
        logger.info("Watering schedule %s marked %s", schedule_id, updated.status.value)
        self._audit(action, f"schedule:{schedule_id}")
        return updated

    async def delete(self, schedule_id: int) -> None:
        seq = self._sequencer.next()
        try:
            await call_with_timeout(
                self.repository.delete(schedule_id),
                self.timeout_s,
                operation=f"schedule.delete {schedule_id}",
            )
        except Exception as exc:
            self._audit("schedule.delete", f"schedule:{schedule_id}", error=exc)
            raise

        if not self._closed:
            self._sequencer.try_apply(seq)
            self._deleted.add(schedule_id)
            self._schedules = [s for s in self._schedules if s.id != schedule_id]
            self._upcoming = [s for s in self._upcoming if s.id != schedule_id]
        logger.info("Deleted watering schedule %s", schedule_id)
        self._audit("schedule.delete", f"schedule:{schedule_id}")

    def _apply_entry(self, schedule: WateringSchedule, seq: int) -> None:
        """Merge one confirmed entry into both lists, never moving it backwards."""
        if self._closed or schedule.id in self._deleted or schedule.garden_id != self.garden_id:
            return
        self._sequencer.try_apply(seq)

        held = self.get(schedule.id)
        if held is not None and held.status.is_terminal and schedule.is_pending:
            return

        self._schedules = sorted(
            [s for s in self._schedules if s.id != schedule.id] + [schedule], key=_schedule_key
        )
        upcoming = [s for s in self._upcoming if s.id != schedule.id]
        if schedule.is_pending and schedule.scheduled_at >= utc_now():
            upcoming.append(schedule)
        self._upcoming = sorted(upcoming, key=_schedule_key)[: self.upcoming_limit]

    # ------------------------------------------------------------------ #
    # AI passthrough
    # ------------------------------------------------------------------ #

    async def get_decision(
        self,
        snapshot: Mapping[str, float] | None = None,
        watering_time: datetime | None = None,
        notes: str | None = None,
    ) -> WateringDecision:
        decision = await self.gateway.get_decision(
            self.garden_id,
            snapshot if snapshot is not None else self._current_input(),
            watering_time,
            notes,
        )
        if not self._closed:
            self._decision = decision
        return decision

    async def get_optimal_amount(self, watering_time: datetime | str, notes: str | None = None) -> Optional[float]:
        return await self.gateway.get_optimal_amount(self.garden_id, self._parse_time(watering_time), notes)

    async def test_connection(self) -> bool:
        return await self.gateway.test_connection()

    def close(self) -> None:
        """Ignore every response that lands from now on."""
        self._closed = True
        self._sequencer.invalidate()

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _current_input(self) -> dict[str, float]:
        if self._decision_input is None:
            return {}
        return dict(self._decision_input())

    @staticmethod
    def _parse_time(value: datetime | str) -> datetime:
        parsed = coerce_datetime(value)
        if parsed is None:
            raise ValidationError(f"Invalid schedule time: {value!r}", detail={"scheduled_at": str(value)})
        return parsed

    @staticmethod
    def _parse_amount(amount: Any) -> float | None:
        if amount is None:
            return None
        try:
            value = float(amount)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid amount: {amount!r}", detail={"amount": str(amount)}) from exc
        if math.isnan(value) or math.isinf(value) or value < 0:
            raise ValidationError("amount must be a non-negative number", detail={"amount": value})
        return value

    def _audit(self, action: str, resource: str, error: BaseException | None = None, **metadata: Any) -> None:
        if self.audit is None:
            return
        self.audit.log_mutation(action, resource, error=error, garden_id=self.garden_id, **metadata)
