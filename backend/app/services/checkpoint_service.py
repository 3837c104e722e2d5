"""
Service métier pour les clients et leurs checkpoints.
Création avec code manuel unique, retrait (désactivation) d'un checkpoint.
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.errors import CodeGenerationFailed, ValidationFailed, not_found
from app.models.checkpoint import Checkpoint
from app.models.client import Client
from app.schemas.checkpoint import CheckpointCreate, CheckpointResponse, ClientCreate, ClientResponse
from app.services.code_validator import generate_manual_code
from app.services.progress_service import scope_cache

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 20


def create_client(db: Session, data: ClientCreate) -> ClientResponse:
    client = Client(name=data.name, address=data.address, lat=data.lat, lng=data.lng, active=True)
    db.add(client)
    db.commit()
    db.refresh(client)
    logger.info("Client créé : %s (%s)", client.name, client.id)
    return ClientResponse.model_validate(client)


def list_clients(db: Session) -> List[ClientResponse]:
    clients = db.execute(
        select(Client).where(Client.active.is_(True)).order_by(Client.name)
    ).scalars().all()
    return [ClientResponse.model_validate(c) for c in clients]


def create_checkpoint(
    db: Session,
    client_id: uuid.UUID,
    data: CheckpointCreate,
) -> CheckpointResponse:
    """
    Crée un checkpoint actif pour un client, avec un code manuel à 9 chiffres.

    Le code est tiré au hasard et comparé à tous les codes existants, y compris
    ceux des checkpoints retirés. Lève ResourceNotFound si le client est introuvable
    et ValidationFailed s'il est inactif.
    """
    client = db.get(Client, client_id)
    if client is None:
        raise not_found("Client", client_id)
    if not client.active:
        raise ValidationFailed("Impossible d'ajouter un checkpoint à un client inactif.")

    order_index = data.order_index
    if order_index is None:
        max_order = db.execute(
            select(func.max(Checkpoint.order_index)).where(Checkpoint.client_id == client_id)
        ).scalar()
        order_index = (max_order or 0) + 1

    checkpoint = Checkpoint(
        client_id=client_id,
        name=data.name,
        description=data.description,
        lat=data.lat,
        lng=data.lng,
        manual_code=_unused_manual_code(db),
        order_index=order_index,
        active=True,
    )
    db.add(checkpoint)
    db.commit()
    db.refresh(checkpoint)

    # Le dénominateur des rondes couvrant ce client change
    scope_cache.invalidate_client(client_id)

    logger.info("Checkpoint créé : %s (client %s, code %s)", checkpoint.id, client_id, checkpoint.manual_code)
    return CheckpointResponse.model_validate(checkpoint)


def list_client_checkpoints(db: Session, client_id: uuid.UUID) -> List[CheckpointResponse]:
    checkpoints = db.execute(
        select(Checkpoint)
        .where(Checkpoint.client_id == client_id, Checkpoint.active.is_(True))
        .order_by(Checkpoint.order_index)
    ).scalars().all()
    return [CheckpointResponse.model_validate(cp) for cp in checkpoints]


def deactivate_checkpoint(db: Session, checkpoint_id: uuid.UUID) -> CheckpointResponse:
    """
    Retire un checkpoint (active → False).

    Les visites existantes restent intactes ; le code n'est jamais réattribué.
    Lève ResourceNotFound si le checkpoint est introuvable, ValidationFailed s'il est déjà retiré.
    """
    checkpoint = db.get(Checkpoint, checkpoint_id)
    if checkpoint is None:
        raise not_found("Checkpoint", checkpoint_id)
    if not checkpoint.active:
        raise ValidationFailed("Le checkpoint est déjà retiré.")

    checkpoint.active = False
    checkpoint.deactivated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(checkpoint)

    scope_cache.invalidate_client(checkpoint.client_id)

    logger.info("Checkpoint retiré : %s (code %s)", checkpoint.id, checkpoint.manual_code)
    return CheckpointResponse.model_validate(checkpoint)


def _unused_manual_code(db: Session) -> str:
    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_manual_code()
        taken = db.execute(
            select(Checkpoint.id).where(Checkpoint.manual_code == code)
        ).scalar()
        if not taken:
            return code
    raise CodeGenerationFailed(
        "Impossible de générer un code manuel unique.", attempts=MAX_CODE_ATTEMPTS,
    )
