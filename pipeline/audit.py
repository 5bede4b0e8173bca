from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID

from db.models import AuditEvent


def record_event(
    session,
    event_type: str,
    payload: dict,
    *,
    actor_user_id: UUID | None = None,
    source: str = "ui",
) -> AuditEvent:
    event = AuditEvent(
        event_type=event_type,
        source=source,
        actor_user_id=actor_user_id,
        occurred_at=datetime.now(UTC),
        payload={key: str(value) if isinstance(value, UUID) else value for key, value in payload.items()},
    )
    session.add(event)
    return event
