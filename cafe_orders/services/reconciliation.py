"""Reconciliation sweep for orders whose payment webhook never arrived.

An order sitting in ``awaiting_payment`` past the policy threshold is treated
as an expired lease. What happens next is decided by an explicit
``ReconciliationPolicy``:

* ``optimistic``: assume the customer paid and confirm the order.
* ``conservative``: change nothing, report the order for manual review.

A dry run reports what the active policy would do without touching any row.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timedelta
from typing import Dict, Iterator, List, Optional, Tuple

from sqlalchemy import and_, or_

from ..common.models.base import utcnow
from ..common.models.order import Order, PaymentStatus
from ..common.services.logging import log_event
from ..common.services.transition_service import PaymentOutcome, PaymentTransitionService
from .notifier import OrderNotifier


SWEEPER_SOURCE = "sweeper"

ACTION_AUTO_CONFIRMED = "auto-confirmed"
ACTION_WOULD_AUTO_CONFIRM = "would-auto-confirm"
ACTION_MANUAL_REVIEW = "manual-review"
ACTION_SKIPPED = "skipped-already-resolved"


@dataclass(frozen=True)
class ReconciliationPolicy:
    name: str
    threshold_minutes: int
    auto_confirm: bool

    def with_threshold(self, minutes: Optional[int]) -> "ReconciliationPolicy":
        if minutes is None:
            return self
        if int(minutes) < 0:
            raise ValueError("thresholdMinutes must be >= 0")
        return replace(self, threshold_minutes=int(minutes))


OPTIMISTIC = ReconciliationPolicy(name="optimistic", threshold_minutes=2, auto_confirm=True)
CONSERVATIVE = ReconciliationPolicy(name="conservative", threshold_minutes=24 * 60, auto_confirm=False)

POLICIES = {p.name: p for p in (OPTIMISTIC, CONSERVATIVE)}


def resolve_policy(name: str, threshold_minutes: Optional[int] = None) -> ReconciliationPolicy:
    try:
        policy = POLICIES[name]
    except KeyError:
        raise ValueError(f"unknown reconciliation policy: {name}")
    return policy.with_threshold(threshold_minutes)


@dataclass
class SweepEntry:
    order_id: str
    order_number: int
    total_amount: float
    created_at: str
    age_minutes: int
    payment_status: str
    action: str


@dataclass
class SweepReport:
    policy: str
    threshold_minutes: int
    dry_run: bool
    checked_at: str
    entries: List[SweepEntry] = field(default_factory=list)

    def count(self, action: str) -> int:
        return sum(1 for e in self.entries if e.action == action)

    def to_dict(self) -> Dict:
        return {
            "policy": self.policy,
            "threshold_minutes": self.threshold_minutes,
            "dry_run": self.dry_run,
            "checked_at": self.checked_at,
            "orders_checked": len(self.entries),
            "auto_confirmed": self.count(ACTION_AUTO_CONFIRMED),
            "manual_review": self.count(ACTION_MANUAL_REVIEW),
            "orders": [asdict(e) for e in self.entries],
        }


class ReconciliationSweeper:
    def __init__(
        self,
        session_factory,
        transitions: PaymentTransitionService,
        notifier: OrderNotifier,
        policy: ReconciliationPolicy = CONSERVATIVE,
        batch_size: int = 50,
        clock=utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._transitions = transitions
        self._notifier = notifier
        self.policy = policy
        self._batch_size = batch_size
        self._clock = clock

    def find_stuck_orders(
        self,
        threshold_minutes: int,
        now: datetime,
        after: Optional[Tuple[datetime, str]] = None,
    ) -> List[Dict]:
        """One page of awaiting orders older than the threshold, oldest first.

        ``after`` is the ``(created_at, id)`` of the last order already seen.
        """
        cutoff = now - timedelta(minutes=threshold_minutes)
        with self._session_factory() as session:
            query = session.query(Order).filter(Order.payment_status == PaymentStatus.AWAITING, Order.created_at < cutoff)
            if after is not None:
                created_at, order_id = after
                query = query.filter(
                    or_(Order.created_at > created_at, and_(Order.created_at == created_at, Order.id > order_id))
                )
            rows = query.order_by(Order.created_at.asc(), Order.id.asc()).limit(self._batch_size).all()
            return [o.to_dict() for o in rows]

    def iter_stuck_orders(self, threshold_minutes: int, now: datetime) -> Iterator[Dict]:
        after = None
        while True:
            page = self.find_stuck_orders(threshold_minutes, now, after)
            yield from page
            if len(page) < self._batch_size:
                return
            last = page[-1]
            after = (datetime.fromisoformat(last["created_at"]), last["order_id"])

    def sweep(
        self,
        *,
        threshold_minutes: Optional[int] = None,
        dry_run: bool = False,
        policy: Optional[ReconciliationPolicy] = None,
        now: Optional[datetime] = None,
    ) -> SweepReport:
        active = (policy or self.policy).with_threshold(threshold_minutes)
        now = now or self._clock()
        report = SweepReport(
            policy=active.name,
            threshold_minutes=active.threshold_minutes,
            dry_run=dry_run,
            checked_at=now.isoformat(),
        )
        log_event("info", "sweep.started", policy=active.name, threshold_minutes=active.threshold_minutes, dry_run=dry_run)

        for order in self.iter_stuck_orders(active.threshold_minutes, now):
            created = datetime.fromisoformat(order["created_at"])
            entry = SweepEntry(
                order_id=order["order_id"],
                order_number=order["order_number"],
                total_amount=order["total_amount"],
                created_at=order["created_at"],
                age_minutes=int((now - created).total_seconds() // 60),
                payment_status=order["payment_status"],
                action=ACTION_MANUAL_REVIEW,
            )
            if active.auto_confirm:
                if dry_run:
                    entry.action = ACTION_WOULD_AUTO_CONFIRM
                else:
                    entry.action, entry.payment_status = self._auto_confirm(order["order_id"], active)
            report.entries.append(entry)

        log_event(
            "info",
            "sweep.finished",
            policy=active.name,
            dry_run=dry_run,
            checked=len(report.entries),
            auto_confirmed=report.count(ACTION_AUTO_CONFIRMED),
            manual_review=report.count(ACTION_MANUAL_REVIEW),
        )
        return report

    def _auto_confirm(self, order_id: str, policy: ReconciliationPolicy):
        # the conditional update re-checks awaiting_payment, so a webhook that
        # landed after the query wins and this becomes a skip
        result = self._transitions.apply(
            order_id,
            PaymentOutcome.PAID,
            source=SWEEPER_SOURCE,
            actor=f"policy:{policy.name}",
            reason=f"awaiting payment longer than {policy.threshold_minutes} minutes",
        )
        if not result.applied:
            return ACTION_SKIPPED, result.payment_status or "unknown"
        self._notifier.notify_safely(result.order)
        return ACTION_AUTO_CONFIRMED, result.payment_status
