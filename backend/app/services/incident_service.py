"""
Service métier pour les incidents.

Signaler un incident ne change pas le statut de la ronde : le passage de la
ronde en "incident" reste une action explicite de l'opérateur (round_lifecycle).
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import IllegalTransition, not_found
from app.models.incident import Incident
from app.models.round import Round
from app.schemas.incident import IncidentCreate, IncidentResponse

logger = logging.getLogger(__name__)

INCIDENT_TRANSITIONS = {
    "open": {"investigating", "resolved"},
    "investigating": {"resolved"},
    "resolved": set(),
}


def report_incident(db: Session, data: IncidentCreate) -> IncidentResponse:
    if data.round_id is not None and db.get(Round, data.round_id) is None:
        raise not_found("Ronde", data.round_id)

    incident = Incident(
        round_id=data.round_id,
        reported_by=data.reported_by,
        incident_type=data.incident_type,
        title=data.title,
        description=data.description,
        priority=data.priority,
        status="open",
        lat=data.lat,
        lng=data.lng,
        photo_url=data.photo_url,
        reported_at=datetime.now(timezone.utc),
    )
    db.add(incident)
    db.commit()
    db.refresh(incident)

    logger.info("Incident %s signalé (%s, priorité %s, ronde %s)", incident.id, data.incident_type, data.priority, data.round_id)
    return IncidentResponse.model_validate(incident)


def update_incident_status(db: Session, incident_id: uuid.UUID, status: str) -> IncidentResponse:
    """open → investigating → resolved (open → resolved autorisé). Un incident résolu est figé."""
    incident = db.get(Incident, incident_id)
    if incident is None:
        raise not_found("Incident", incident_id)
    if status not in INCIDENT_TRANSITIONS.get(incident.status, set()):
        raise IllegalTransition(
            f"Transition d'incident {incident.status} → {status} non autorisée.",
            status=incident.status,
            target=status,
        )

    incident.status = status
    if status == "resolved":
        incident.resolved_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(incident)
    return IncidentResponse.model_validate(incident)


def list_round_incidents(db: Session, round_id: uuid.UUID) -> List[IncidentResponse]:
    incidents = db.execute(
        select(Incident).where(Incident.round_id == round_id).order_by(Incident.reported_at)
    ).scalars().all()
    return [IncidentResponse.model_validate(i) for i in incidents]
