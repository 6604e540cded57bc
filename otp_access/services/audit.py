from ..models import db, AuditLog


def record(event_type: str, actor_type: str, actor_id, **payload):
    """Stage an audit row; it is written with the caller's commit."""
    db.session.add(AuditLog(
        actor_type=actor_type,
        actor_id=str(actor_id) if actor_id is not None else None,
        event_type=event_type,
        payload_json=payload or None,
    ))
