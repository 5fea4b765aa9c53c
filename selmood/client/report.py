from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .models import (
    DEFAULT_AVATAR,
    UNKNOWN_USER_ID,
    UNKNOWN_USER_NAME,
    JoinedReportRow,
)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def parse_timestamp(value: object) -> datetime:
    """Parse an ISO-8601 (or SQLite "YYYY-MM-DD HH:MM:SS") timestamp.

    Naive values are read as UTC. Anything unparseable maps to the oldest
    possible instant so it sorts last in a descending report.
    """
    if not isinstance(value, str) or not value.strip():
        return _OLDEST
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return _OLDEST
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def join_row(record: dict, user: Optional[dict]) -> JoinedReportRow:
    if user is None:
        return JoinedReportRow(
            user_id=UNKNOWN_USER_ID,
            user_name=UNKNOWN_USER_NAME,
            user_avatar=DEFAULT_AVATAR,
            user_grade="",
            user_gender="",
            question_id=record.get("question_id"),
            score=record.get("score"),
            timestamp=record.get("timestamp") or "",
        )
    return JoinedReportRow(
        user_id=user.get("id"),
        user_name=user.get("name") or "",
        user_avatar=user.get("avatar") or DEFAULT_AVATAR,
        user_grade=user.get("grade") or "",
        user_gender=user.get("gender") or "",
        question_id=record.get("question_id"),
        score=record.get("score"),
        timestamp=record.get("timestamp") or "",
    )


def assemble_report(users: Iterable[dict], responses: Iterable[dict]) -> List[dict]:
    """Join local responses to local users the way the backend's SQL join does.

    Unlike the SQL inner join, responses with no matching user are kept with
    placeholder user fields. Rows come back newest first.
    """
    users_by_id: Dict[object, dict] = {}
    for user in users:
        # First profile wins on a duplicate id, matching a linear scan.
        users_by_id.setdefault(user.get("id"), user)

    rows = [join_row(record, users_by_id.get(record.get("user_id"))) for record in responses]
    rows.sort(key=lambda row: parse_timestamp(row.timestamp), reverse=True)
    return [row.model_dump() for row in rows]
