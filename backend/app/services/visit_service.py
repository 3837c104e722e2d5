"""
Enregistrement des visites de checkpoint.

Stratégie d'idempotence : un re-scan d'un checkpoint déjà visité sous la même
ronde est accepté silencieusement (duplicate=True) sans nouvelle ligne. Le geste
physique a eu lieu ; un double scan accidentel ou un retry réseau ne doit ni
échouer ni compter deux fois. La contrainte unique (round_id, checkpoint_id)
couvre le cas de deux sessions concurrentes.
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import AlreadyClaimed, IllegalTransition, OutOfScope, not_found
from app.models.checkpoint_visit import CheckpointVisit
from app.models.round import ROUND_ACTIVE, ROUND_INCIDENT, Round
from app.schemas.visit import VisitCreate, VisitRecordResult, VisitResponse
from app.services import progress_service
from app.services.checkpoint_resolver import resolve_code
from app.services.code_validator import validate_manual_code

logger = logging.getLogger(__name__)

# Une ronde en incident continue d'accepter les visites
VISITABLE_STATUSES = (ROUND_ACTIVE, ROUND_INCIDENT)


def record_visit(db: Session, round_id: uuid.UUID, data: VisitCreate) -> VisitRecordResult:
    """
    Enregistre le passage d'un opérateur à un checkpoint identifié par son code.

    Étapes :
    1. La ronde existe, appartient à l'opérateur et est active (ou en incident)
    2. Le code est bien formé (MalformedCode), avant toute requête de résolution
    3. Le code correspond à un checkpoint actif (CheckpointNotFound / AmbiguousCheckpoint)
    4. Le checkpoint appartient à un client du périmètre de la ronde (OutOfScope)
    5. Visite déjà présente → renvoyée avec duplicate=True, sinon insertion
    """
    round_ = db.get(Round, round_id, populate_existing=True)
    if round_ is None:
        raise not_found("Ronde", round_id)
    if round_.assigned_operator_id != data.operator_id:
        raise AlreadyClaimed("Cette ronde est attribuée à un autre opérateur.", round_id=str(round_id))
    if round_.status not in VISITABLE_STATUSES:
        raise IllegalTransition(
            f"Impossible d'enregistrer une visite sur une ronde en statut {round_.status}.",
            round_id=str(round_id),
            status=round_.status,
        )

    code = validate_manual_code(data.code)
    resolved = resolve_code(db, code)

    scope = progress_service.get_scope(db, round_)
    if not scope.contains_client(resolved.client_id):
        logger.info(
            "Visite refusée — checkpoint %s (client %s) hors périmètre de la ronde %s",
            resolved.checkpoint_id, resolved.client_id, round_id,
        )
        raise OutOfScope(
            f"Le checkpoint « {resolved.name} » n'appartient pas à cette ronde.",
            round_id=str(round_id),
            checkpoint_id=str(resolved.checkpoint_id),
        )
    if scope.client_of(resolved.checkpoint_id) is None:
        # Checkpoint créé après la mise en cache du périmètre
        scope = progress_service.get_scope(db, round_, use_cache=False)

    visit = _find_visit(db, round_id, resolved.checkpoint_id)
    duplicate = visit is not None

    if visit is None:
        visit = CheckpointVisit(
            round_id=round_id,
            checkpoint_id=resolved.checkpoint_id,
            operator_id=data.operator_id,
            visited_at=data.visited_at or datetime.now(timezone.utc),
            scan_method=data.scan_method,
            photo_url=data.photo_url,
            lat=data.lat,
            lng=data.lng,
        )
        db.add(visit)
        try:
            db.commit()
        except IntegrityError:
            # Une autre session a inséré la même visite entre notre lecture et notre commit
            db.rollback()
            visit = _find_visit(db, round_id, resolved.checkpoint_id)
            if visit is None:
                raise
            duplicate = True
        else:
            db.refresh(visit)

    if duplicate:
        logger.debug("Re-scan ignoré : checkpoint %s déjà visité (ronde %s)", resolved.checkpoint_id, round_id)
    else:
        logger.info(
            "Visite enregistrée — ronde %s, checkpoint %s (%s)",
            round_id, resolved.checkpoint_id, data.scan_method,
        )

    progress = progress_service.aggregate(scope, progress_service.visited_checkpoint_ids(db, round_id))
    return VisitRecordResult(
        visit=VisitResponse.model_validate(visit),
        duplicate=duplicate,
        progress=progress,
    )


def list_round_visits(db: Session, round_id: uuid.UUID) -> List[VisitResponse]:
    if db.get(Round, round_id) is None:
        raise not_found("Ronde", round_id)
    visits = db.execute(
        select(CheckpointVisit)
        .where(CheckpointVisit.round_id == round_id)
        .order_by(CheckpointVisit.visited_at)
    ).scalars().all()
    return [VisitResponse.model_validate(v) for v in visits]


def _find_visit(db: Session, round_id: uuid.UUID, checkpoint_id: uuid.UUID) -> Optional[CheckpointVisit]:
    return db.execute(
        select(CheckpointVisit).where(
            CheckpointVisit.round_id == round_id,
            CheckpointVisit.checkpoint_id == checkpoint_id,
        )
    ).scalar()
