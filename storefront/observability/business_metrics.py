from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import func
from sqlalchemy.orm import Session

from storefront.config import Config
from storefront.models import (
    Order,
    OrderPaymentGroup,
    OrderStatus,
    PaymentGroupStatus,
    SubscriptionOrder,
    SubscriptionStatus,
)

try:
    _LOCAL_TZ = ZoneInfo(getattr(Config, "DEFAULT_TIMEZONE", "UTC"))
except ZoneInfoNotFoundError:
    _LOCAL_TZ = timezone.utc


@dataclass(frozen=True)
class ReportWindow:
    days: int
    start: datetime
    end: datetime


def build_report_window(days: int = 30, now: Optional[datetime] = None) -> ReportWindow:
    """Trailing window of whole local days ending with today."""
    days = max(1, days)
    now = (now or datetime.now(timezone.utc)).astimezone(_LOCAL_TZ)
    end = now.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
    start = end - timedelta(days=days)
    return ReportWindow(days=days, start=start.astimezone(timezone.utc), end=end.astimezone(timezone.utc))


def _to_local_timezone(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(_LOCAL_TZ)


def _in_window(value: Optional[datetime], window: ReportWindow) -> bool:
    if value is None:
        return False
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return window.start <= value < window.end


def _build_series_metrics(timestamps: List[datetime], window: ReportWindow) -> Dict[str, object]:
    counts: Counter = Counter(ts.date() for ts in timestamps)

    day = window.start
    series: List[Dict[str, object]] = []
    while day < window.end:
        date_key = day.astimezone(_LOCAL_TZ).date()
        series.append({"date": date_key.isoformat(), "count": counts.get(date_key, 0)})
        day += timedelta(days=1)

    total = sum(point["count"] for point in series)
    return {
        "total": total,
        "series": series,
        "series_max": max((point["count"] for point in series), default=0),
        "mean_per_day": total / len(series) if series else 0.0,
    }


def compute_subscription_metrics(session: Session, window: ReportWindow) -> Dict[str, object]:
    """Daily subscription order volume plus confirmed revenue inside the window."""
    rows = session.query(SubscriptionOrder.created_at, SubscriptionOrder.status, SubscriptionOrder.total_amount).all()
    timestamps = [_to_local_timezone(row[0]) for row in rows if _in_window(row[0], window)]
    metrics = _build_series_metrics(timestamps, window)
    metrics["confirmed_revenue_huf"] = sum(
        row[2] for row in rows if row[1] == SubscriptionStatus.CONFIRMED and _in_window(row[0], window)
    )
    metrics["pending_payment"] = sum(1 for row in rows if row[1] == SubscriptionStatus.PENDING_PAYMENT)
    return metrics


def compute_cart_order_metrics(session: Session, window: ReportWindow) -> Dict[str, object]:
    rows = session.query(Order._created_at, Order._status, Order.total_huf).all()
    timestamps = [_to_local_timezone(row[0]) for row in rows if _in_window(row[0], window)]
    metrics = _build_series_metrics(timestamps, window)
    metrics["paid_revenue_huf"] = sum(
        row[2] for row in rows if row[1] == OrderStatus.PAID.value and _in_window(row[0], window)
    )
    return metrics


def compute_receivables(session: Session) -> Dict[str, int]:
    pending_count, pending_amount = (
        session.query(func.count(OrderPaymentGroup.id), func.coalesce(func.sum(OrderPaymentGroup.amount), 0))
        .join(SubscriptionOrder, OrderPaymentGroup.orderID == SubscriptionOrder.id)
        .filter(SubscriptionOrder.status == SubscriptionStatus.CONFIRMED)
        .filter(OrderPaymentGroup.status == PaymentGroupStatus.PENDING)
        .one()
    )
    return {"pending_groups": int(pending_count), "pending_amount_huf": int(pending_amount)}


__all__ = [
    "ReportWindow",
    "build_report_window",
    "compute_subscription_metrics",
    "compute_cart_order_metrics",
    "compute_receivables",
]
