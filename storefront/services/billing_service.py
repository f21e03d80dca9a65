from __future__ import annotations

import calendar
import logging
from collections import OrderedDict
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, joinedload

from storefront.config import Config
from storefront.models import (
    OrderPaymentGroup,
    PaymentGroupStatus,
    PaymentPlan,
    SubscriptionOrder,
    SubscriptionStatus,
)
from storefront.observability import increment_counter, record_event
from storefront.services.schedule_service import date_from_index

BILLING_ACTIONS = ("create_bill", "send_bill", "mark_paid")
OVERVIEW_LOOKBACK_DAYS = 30


def add_months(day: date, months: int) -> date:
    """Shift by calendar months; days past the target month's end clamp to its last day."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def format_hu_numeric_date(day: date) -> str:
    return f"{day.year}. {day.month:02d}. {day.day:02d}."


def split_amount(total: int, parts: int) -> List[int]:
    """Equal rounded shares with the remainder on the last share."""
    share = int(round(total / parts))
    return [share] * (parts - 1) + [total - share * (parts - 1)]


def build_payment_groups(
    plan: PaymentPlan | str,
    total: int,
    schedule: Sequence[int],
    start: Optional[date] = None,
    today: Optional[date] = None,
) -> List[OrderPaymentGroup]:
    plan = PaymentPlan(plan)
    start = start or Config.SCHEDULE_START_DATE
    today = today or date.today()

    if plan == PaymentPlan.FULL:
        return [
            OrderPaymentGroup(
                group_number=1,
                amount=total,
                due_date=today,
                status=PaymentGroupStatus.PENDING,
                description="Teljes összeg egyszeri fizetése",
            )
        ]

    count = len(schedule)
    if count == 0:
        raise ValueError("Installment plans need at least one delivery")
    amounts = split_amount(total, count)
    groups: List[OrderPaymentGroup] = []

    if plan == PaymentPlan.MONTHLY:
        for position, amount in enumerate(amounts):
            groups.append(
                OrderPaymentGroup(
                    group_number=position + 1,
                    amount=amount,
                    due_date=add_months(today, position),
                    status=PaymentGroupStatus.PENDING,
                    description=f"{position + 1}. havi részlet ({count} részletből)",
                )
            )
        return groups

    delivery_dates = sorted(date_from_index(start, index) for index in schedule)
    for position, (amount, delivery_date) in enumerate(zip(amounts, delivery_dates)):
        groups.append(
            OrderPaymentGroup(
                group_number=position + 1,
                amount=amount,
                due_date=delivery_date - timedelta(days=1),
                status=PaymentGroupStatus.PENDING,
                description=f"{position + 1}. szállítás fizetése ({format_hu_numeric_date(delivery_date)})",
            )
        )
    return groups


class BillingService:
    """Admin-side bookkeeping for payment groups: bill creation, sending and payment."""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        self.logger = logging.getLogger(__name__)

    def get_group(self, group_id: int) -> Optional[OrderPaymentGroup]:
        return (
            self.db.query(OrderPaymentGroup)
            .options(joinedload(OrderPaymentGroup.order).joinedload(SubscriptionOrder.user))
            .filter(OrderPaymentGroup.id == group_id)
            .first()
        )

    def apply_action(
        self,
        group_id: int,
        action: str,
        bill_number: Optional[str] = None,
        bill_notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[bool, str, Optional[OrderPaymentGroup]]:
        if action not in BILLING_ACTIONS:
            raise ValueError("Invalid action")

        group = self.db.query(OrderPaymentGroup).filter(OrderPaymentGroup.id == group_id).first()
        if group is None:
            return False, "Payment group not found", None

        now = now or datetime.now(timezone.utc)
        if action == "create_bill":
            group.bill_created = True
            group.bill_created_at = now
            if bill_number:
                group.bill_number = bill_number
            if bill_notes:
                group.bill_notes = bill_notes
        elif action == "send_bill":
            group.bill_sent = True
            group.bill_sent_at = now
        else:
            group.status = PaymentGroupStatus.PAID
            group.paid_at = now
        group.updated_at = now

        self.db.commit()
        self.db.refresh(group)

        increment_counter("billing_actions_total", labels={"action": action})
        record_event("billing_action", {"payment_group_id": group.id, "order_id": group.orderID, "action": action})
        self.logger.info(
            "Payment group updated",
            extra={"payment_group_id": group.id, "order_id": group.orderID, "action": action},
        )
        return True, "Payment group updated", group

    def billing_overview(self, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or date.today()
        lookback = today - timedelta(days=OVERVIEW_LOOKBACK_DAYS)
        groups = (
            self.db.query(OrderPaymentGroup)
            .options(joinedload(OrderPaymentGroup.order).joinedload(SubscriptionOrder.user))
            .join(SubscriptionOrder, OrderPaymentGroup.orderID == SubscriptionOrder.id)
            .filter(SubscriptionOrder.status == SubscriptionStatus.CONFIRMED)
            .filter(
                or_(
                    and_(
                        OrderPaymentGroup.due_date >= lookback,
                        OrderPaymentGroup.status != PaymentGroupStatus.CANCELLED,
                    ),
                    OrderPaymentGroup.status == PaymentGroupStatus.PENDING,
                )
            )
            .order_by(OrderPaymentGroup.due_date.asc(), OrderPaymentGroup.id.asc())
            .all()
        )

        by_date: "OrderedDict[str, List[Dict[str, Any]]]" = OrderedDict()
        for group in groups:
            payload = group.to_dict()
            order = group.order
            payload["orderNumber"] = order.order_number if order else None
            payload["customerEmail"] = order.user.email if order and order.user else None
            by_date.setdefault(group.due_date.isoformat(), []).append(payload)

        pending = [group for group in groups if group.status == PaymentGroupStatus.PENDING]
        active = [group for group in groups if group.status != PaymentGroupStatus.CANCELLED]
        summary = {
            "totalPending": len(pending),
            "billsToCreate": sum(1 for group in active if not group.bill_created),
            "billsToSend": sum(1 for group in active if group.bill_created and not group.bill_sent),
            "awaitingPayment": sum(1 for group in pending if group.bill_sent),
            "pendingAmount": sum(group.amount for group in pending),
        }
        return {"summary": summary, "paymentGroupsByDate": by_date}
