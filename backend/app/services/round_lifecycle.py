"""
Machine à états du cycle de vie des rondes.

    pending ──start──▶ active ──complete──▶ completed (terminal)
                         │ ▲
                escalate │ │ resume
                         ▼ │
                       incident

Chaque transition est validée contre la table ALLOWED_TRANSITIONS puis
commitée par un UPDATE conditionnel sur le statut attendu, de sorte que deux
sessions concurrentes ne puissent pas appliquer la même transition deux fois.
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import AlreadyClaimed, IllegalTransition, IncompleteRound, NotPending, ValidationFailed, not_found
from app.models.incident import Incident
from app.models.round import (
    MOTORIZED_MODES,
    ROUND_ACTIVE,
    ROUND_COMPLETED,
    ROUND_INCIDENT,
    ROUND_PENDING,
    Round,
)
from app.models.vehicle import Vehicle
from app.schemas.round import RoundComplete, RoundEscalate, RoundResponse, RoundResume, RoundStart
from app.services import claim_service, progress_service

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    ROUND_PENDING: {ROUND_ACTIVE},
    ROUND_ACTIVE: {ROUND_COMPLETED, ROUND_INCIDENT},
    ROUND_INCIDENT: {ROUND_ACTIVE},
    ROUND_COMPLETED: set(),
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def ensure_transition(round_: Round, target: str) -> None:
    if not can_transition(round_.status, target):
        raise IllegalTransition(
            f"Transition {round_.status} → {target} non autorisée.",
            round_id=str(round_.id),
            status=round_.status,
            target=target,
        )


def start_round(db: Session, round_id: uuid.UUID, data: RoundStart) -> RoundResponse:
    """pending → active, via la prise en charge atomique. Amorce le suivi de progression."""
    round_ = _load(db, round_id)
    if round_.status != ROUND_PENDING:
        if round_.assigned_operator_id not in (None, data.operator_id):
            raise AlreadyClaimed("Cette ronde a déjà été prise par un autre opérateur.", round_id=str(round_id))
        raise NotPending(
            f"La ronde n'est plus en attente (statut {round_.status}).",
            round_id=str(round_id),
            status=round_.status,
        )

    started = claim_service.claim_and_start(db, round_id, data)
    progress_service.on_round_started(db, started)
    return RoundResponse.model_validate(started)


def complete_round(db: Session, round_id: uuid.UUID, data: RoundComplete) -> RoundResponse:
    """
    active → completed.

    La complétude est recalculée depuis la base au moment de la transition
    (jamais à partir d'un compteur mis en cache côté client). En mode motorisé,
    l'odomètre de fin est obligatoire et doit être ≥ à celui de départ.
    """
    round_ = _load(db, round_id)
    ensure_transition(round_, ROUND_COMPLETED)
    _ensure_operator(round_, data.operator_id)

    progress = progress_service.compute_progress_for(db, round_, use_cache=False)
    if not progress.is_complete:
        outstanding = [
            {
                "client_id": str(c.client_id),
                "client_name": c.client_name,
                "remaining": c.total_checkpoints - c.completed_checkpoints,
            }
            for c in progress.clients
            if not c.is_complete
        ]
        raise IncompleteRound(
            f"{progress.total_checkpoints - progress.completed_checkpoints} checkpoint(s) restent à visiter.",
            round_id=str(round_id),
            outstanding=outstanding,
        )

    values: Dict[str, Any] = {"completed_at": datetime.now(timezone.utc)}

    motorized = round_.vehicle_mode in MOTORIZED_MODES
    if motorized:
        if data.end_odometer is None:
            raise ValidationFailed("Le relevé d'odomètre de fin est obligatoire.", field="end_odometer")
        start = round_.start_odometer or 0
        if data.end_odometer < start:
            raise ValidationFailed(
                f"L'odomètre de fin ({data.end_odometer}) est inférieur à celui de départ ({start}).",
                field="end_odometer",
                start_odometer=start,
            )
        values["end_odometer"] = data.end_odometer

    if data.location is not None:
        values["end_lat"] = data.location.lat
        values["end_lng"] = data.location.lng
    elif settings.GEOLOCATION_REQUIRED:
        raise ValidationFailed("La position GPS de fin de ronde est obligatoire.", field="location")
    else:
        logger.warning("Clôture de la ronde %s sans position GPS", round_id)

    _commit_transition(db, round_, ROUND_ACTIVE, ROUND_COMPLETED, data.operator_id, values)

    if motorized and round_.vehicle_id is not None:
        _update_vehicle_odometer(db, round_.vehicle_id, data.end_odometer)
        db.commit()

    # Ronde figée : son périmètre ne sera plus consulté en direct
    progress_service.scope_cache.forget(round_id)

    logger.info(
        "Ronde %s terminée — %d/%d checkpoints",
        round_id, progress.completed_checkpoints, progress.total_checkpoints,
    )
    return RoundResponse.model_validate(_load(db, round_id))


def escalate_round(db: Session, round_id: uuid.UUID, data: RoundEscalate) -> RoundResponse:
    """
    active → incident, sans condition de complétude.
    Les visites déjà enregistrées restent valables pour une clôture ultérieure.
    """
    round_ = _load(db, round_id)
    ensure_transition(round_, ROUND_INCIDENT)
    _ensure_operator(round_, data.operator_id)

    incident: Optional[Incident] = None
    if data.incident is not None:
        incident = Incident(
            round_id=round_id,
            reported_by=data.operator_id,
            incident_type=data.incident.incident_type,
            title=data.incident.title,
            description=data.incident.description,
            priority=data.incident.priority,
            status="open",
            lat=data.incident.lat,
            lng=data.incident.lng,
            photo_url=data.incident.photo_url,
            reported_at=datetime.now(timezone.utc),
        )

    _commit_transition(db, round_, ROUND_ACTIVE, ROUND_INCIDENT, data.operator_id, {}, extra=incident)

    logger.info("Ronde %s passée en incident par %s", round_id, data.operator_id)
    return RoundResponse.model_validate(_load(db, round_id))


def resume_round(db: Session, round_id: uuid.UUID, data: RoundResume) -> RoundResponse:
    """incident → active."""
    round_ = _load(db, round_id)
    if round_.status != ROUND_INCIDENT:
        # pending → active passe par start_round (prise en charge), jamais par une reprise
        raise IllegalTransition(
            f"Seule une ronde en incident peut être reprise (statut {round_.status}).",
            round_id=str(round_id),
            status=round_.status,
            target=ROUND_ACTIVE,
        )
    _ensure_operator(round_, data.operator_id)

    _commit_transition(db, round_, ROUND_INCIDENT, ROUND_ACTIVE, data.operator_id, {})

    logger.info("Ronde %s reprise par %s", round_id, data.operator_id)
    return RoundResponse.model_validate(_load(db, round_id))


def _commit_transition(
    db: Session,
    round_: Round,
    expected: str,
    target: str,
    operator_id: uuid.UUID,
    values: Dict[str, Any],
    extra: Optional[Any] = None,
) -> None:
    """UPDATE conditionnel sur le statut attendu ; rowcount 0 = une autre session est passée avant."""
    round_id = round_.id
    result = db.execute(
        update(Round)
        .where(
            Round.id == round_id,
            Round.status == expected,
            Round.assigned_operator_id == operator_id,
        )
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        current = db.get(Round, round_id, populate_existing=True)
        status = current.status if current is not None else None
        raise IllegalTransition(
            f"Transition {expected} → {target} refusée : la ronde est désormais en statut {status}.",
            round_id=str(round_id),
            status=status,
            target=target,
        )

    if extra is not None:
        db.add(extra)
    db.commit()


def _update_vehicle_odometer(db: Session, vehicle_id: uuid.UUID, odometer: int) -> None:
    vehicle = db.get(Vehicle, vehicle_id)
    if vehicle is None:
        return
    if vehicle.current_odometer is None or odometer > vehicle.current_odometer:
        vehicle.current_odometer = odometer


def _ensure_operator(round_: Round, operator_id: uuid.UUID) -> None:
    if round_.assigned_operator_id != operator_id:
        raise AlreadyClaimed(
            "Cette ronde est attribuée à un autre opérateur.",
            round_id=str(round_.id),
        )


def _load(db: Session, round_id: uuid.UUID) -> Round:
    round_ = db.get(Round, round_id, populate_existing=True)
    if round_ is None:
        raise not_found("Ronde", round_id)
    return round_
