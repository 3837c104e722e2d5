"""
Service métier pour la création et la consultation des rondes.
Les transitions d'état sont dans round_lifecycle.
"""

import uuid
import logging
from typing import List

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.errors import ValidationFailed, not_found
from app.models.client import Client
from app.models.round import ROUND_ACTIVE, ROUND_INCIDENT, ROUND_PENDING, Round
from app.models.round_template import RoundTemplate
from app.schemas.round import RoundCreate, RoundResponse

logger = logging.getLogger(__name__)

VISIBLE_STATUSES = (ROUND_PENDING, ROUND_ACTIVE, ROUND_INCIDENT)


def create_round(db: Session, data: RoundCreate) -> RoundResponse:
    """
    Crée une ronde en attente, à partir d'un modèle actif ou pour un client unique (ad hoc).
    Sans opérateur assigné, la ronde est visible et prenable par tous.
    """
    if data.template_id is not None:
        template = db.get(RoundTemplate, data.template_id)
        if template is None:
            raise not_found("Modèle", data.template_id)
        if not template.active:
            raise ValidationFailed("Impossible de créer une ronde à partir d'un modèle inactif.")
    else:
        client = db.get(Client, data.client_id)
        if client is None:
            raise not_found("Client", data.client_id)
        if not client.active:
            raise ValidationFailed("Impossible de créer une ronde pour un client inactif.")

    round_ = Round(
        template_id=data.template_id,
        client_id=data.client_id,
        status=ROUND_PENDING,
        assigned_operator_id=data.assigned_operator_id,
        created_by=data.created_by,
    )
    db.add(round_)
    db.commit()
    db.refresh(round_)

    logger.info(
        "Ronde créée : %s (%s)",
        round_.id, f"modèle {data.template_id}" if data.template_id else f"client {data.client_id}",
    )
    return RoundResponse.model_validate(round_)


def get_round(db: Session, round_id: uuid.UUID) -> RoundResponse:
    round_ = db.get(Round, round_id)
    if round_ is None:
        raise not_found("Ronde", round_id)
    return RoundResponse.model_validate(round_)


def list_operator_rounds(db: Session, operator_id: uuid.UUID) -> List[RoundResponse]:
    """Rondes assignées à l'opérateur ou non assignées, encore en cours ou à démarrer."""
    rounds = db.execute(
        select(Round)
        .where(
            or_(Round.assigned_operator_id == operator_id, Round.assigned_operator_id.is_(None)),
            Round.status.in_(VISIBLE_STATUSES),
        )
        .order_by(Round.created_at.desc())
    ).scalars().all()
    return [RoundResponse.model_validate(r) for r in rounds]
