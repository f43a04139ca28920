# Overview: Append-only audit trail for order and sales events.

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from ..extensions import db
from ..models import AuditEvent

MAX_ACTOR_LENGTH = AuditEvent.__table__.c.actor.type.length

"""
Audit trail invariants

- Append-only: no updates or deletes of existing events.
- Events are flushed inside the caller's transaction; the caller commits.
- occurred_at is business time; created_at is system time (DB default).
"""


def append_audit_event(
    *,
    establishment_id: int,
    event_type: str,
    entity_type: str,
    entity_id: int,
    actor: str | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict[str, Any]] = None,
) -> AuditEvent:
    ev = AuditEvent(
        establishment_id=establishment_id,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        actor=actor[:MAX_ACTOR_LENGTH] if actor else actor,
        occurred_at=occurred_at,  # if None, db default applies
        note=note,
        payload=json.dumps(payload, sort_keys=True) if payload is not None else None,
    )
    db.session.add(ev)
    db.session.flush()
    return ev
