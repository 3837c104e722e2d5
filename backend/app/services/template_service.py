"""
Service métier pour les modèles de ronde.

Un modèle n'est jamais modifié en place (intégrité de l'historique des rondes) :
la duplication produit une copie éditable, la désactivation le retire des créations.
"""

import uuid
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import ValidationFailed, not_found
from app.models.client import Client
from app.models.round_template import RoundTemplate, RoundTemplateClient
from app.schemas.round_template import RoundTemplateCreate, RoundTemplateResponse

logger = logging.getLogger(__name__)


def create_template(
    db: Session,
    data: RoundTemplateCreate,
    created_by: Optional[uuid.UUID] = None,
) -> RoundTemplateResponse:
    """Crée un modèle et sa liste ordonnée de clients. Tous les clients doivent exister."""
    known = set(
        db.execute(select(Client.id).where(Client.id.in_(data.client_ids))).scalars().all()
    )
    missing = [str(cid) for cid in data.client_ids if cid not in known]
    if missing:
        raise ValidationFailed(f"Client(s) introuvable(s) : {', '.join(missing)}.", client_ids=missing)

    template = RoundTemplate(
        name=data.name,
        shift_type=data.shift_type,
        requires_signature=data.requires_signature,
        active=True,
        created_by=created_by,
    )
    db.add(template)
    db.flush()  # Obtenir l'ID avant d'insérer les associations

    for index, client_id in enumerate(data.client_ids, start=1):
        db.add(RoundTemplateClient(template_id=template.id, client_id=client_id, order_index=index))

    db.commit()
    db.refresh(template)

    logger.info("Modèle de ronde créé : %s (%s) — %d client(s)", template.name, template.id, len(data.client_ids))
    return _to_response(db, template)


def list_templates(db: Session, include_inactive: bool = False) -> List[RoundTemplateResponse]:
    stmt = select(RoundTemplate).order_by(RoundTemplate.name)
    if not include_inactive:
        stmt = stmt.where(RoundTemplate.active.is_(True))
    return [_to_response(db, t) for t in db.execute(stmt).scalars().all()]


def duplicate_template(db: Session, template_id: uuid.UUID, name: Optional[str] = None) -> RoundTemplateResponse:
    """Copie un modèle (clients et ordre compris) pour en obtenir une version éditable."""
    source = db.get(RoundTemplate, template_id)
    if source is None:
        raise not_found("Modèle", template_id)

    copy = RoundTemplate(
        name=(name or "").strip() or f"{source.name} (copie)",
        shift_type=source.shift_type,
        requires_signature=source.requires_signature,
        active=True,
        created_by=source.created_by,
    )
    db.add(copy)
    db.flush()

    for link in _template_links(db, template_id):
        db.add(RoundTemplateClient(template_id=copy.id, client_id=link.client_id, order_index=link.order_index))

    db.commit()
    db.refresh(copy)
    logger.info("Modèle %s dupliqué → %s", template_id, copy.id)
    return _to_response(db, copy)


def deactivate_template(db: Session, template_id: uuid.UUID) -> RoundTemplateResponse:
    template = db.get(RoundTemplate, template_id)
    if template is None:
        raise not_found("Modèle", template_id)
    template.active = False
    db.commit()
    db.refresh(template)
    return _to_response(db, template)


def _template_links(db: Session, template_id: uuid.UUID) -> List[RoundTemplateClient]:
    return list(
        db.execute(
            select(RoundTemplateClient)
            .where(RoundTemplateClient.template_id == template_id)
            .order_by(RoundTemplateClient.order_index)
        ).scalars().all()
    )


def _to_response(db: Session, template: RoundTemplate) -> RoundTemplateResponse:
    return RoundTemplateResponse(
        id=template.id,
        name=template.name,
        shift_type=template.shift_type,
        requires_signature=bool(template.requires_signature),
        active=bool(template.active),
        client_ids=[link.client_id for link in _template_links(db, template.id)],
        created_at=template.created_at,
    )
