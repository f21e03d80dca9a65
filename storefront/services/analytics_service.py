"""QR code visit tracking for the printed bottle labels."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.orm import Session

from storefront.models import QRCodeVisit
from storefront.observability import increment_counter

INGREDIENTS_PAGE = "/osszetevok"
HOME_PAGE = "/"
RECENT_VISITS_LIMIT = 20


def _utcnow_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_likely_qr_code_visit(referrer: Optional[str], page: str) -> bool:
    return page in (INGREDIENTS_PAGE, HOME_PAGE) and not referrer


def client_ip(headers: Mapping[str, str]) -> Optional[str]:
    forwarded = headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return headers.get("X-Real-IP") or None


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise ValueError("timestamp must be an ISO 8601 string")
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed
    return _utcnow_naive()


class AnalyticsService:
    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        self.logger = logging.getLogger(__name__)

    def track_visit(self, payload: Any, ip_address: Optional[str] = None) -> QRCodeVisit:
        if not isinstance(payload, dict) or not payload.get("page") or not payload.get("sessionId"):
            raise ValueError("Missing required fields")

        is_direct = payload.get("isDirectVisit")
        visit = QRCodeVisit(
            page=str(payload["page"]),
            referrer=payload.get("referrer") or None,
            user_agent=payload.get("userAgent") or None,
            ip_address=ip_address,
            session_id=str(payload["sessionId"]),
            is_direct_visit=True if is_direct is None else bool(is_direct),
            timestamp=_parse_timestamp(payload.get("timestamp")),
        )
        self.db.add(visit)
        self.db.commit()
        increment_counter("qr_visits_total", labels={"page": visit.page})
        return visit

    def qr_summary(self, days: int = 30, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or _utcnow_naive()
        since = now - timedelta(days=days)
        visits = (
            self.db.query(QRCodeVisit)
            .filter(QRCodeVisit.timestamp >= since)
            .order_by(QRCodeVisit.timestamp.desc())
            .all()
        )
        week_ago = now - timedelta(days=7)
        return {
            "totalVisits": len(visits),
            "osszetevokDirectVisits": sum(
                1 for visit in visits if visit.page == INGREDIENTS_PAGE and visit.is_direct_visit
            ),
            "mainPageNoReferrerVisits": sum(
                1 for visit in visits if visit.page == HOME_PAGE and visit.is_direct_visit
            ),
            "todayVisits": sum(1 for visit in visits if visit.timestamp.date() == now.date()),
            "weeklyVisits": sum(1 for visit in visits if visit.timestamp >= week_ago),
            "monthlyVisits": len(visits),
            "recentVisits": [visit.to_dict() for visit in visits[:RECENT_VISITS_LIMIT]],
        }
