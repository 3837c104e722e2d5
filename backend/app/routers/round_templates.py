"""
Router pour les modèles de rondes (liste ordonnée de clients réutilisable).
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.round_template import RoundTemplateCreate, RoundTemplateDuplicate, RoundTemplateResponse
from app.services import template_service

router = APIRouter(prefix="/api/v1/round-templates", tags=["Modèles de rondes"])


@router.post("", response_model=RoundTemplateResponse, status_code=201, summary="Créer un modèle")
def create_template(data: RoundTemplateCreate, db: Session = Depends(get_db)):
    return template_service.create_template(db, data)


@router.get("", response_model=List[RoundTemplateResponse], summary="Lister les modèles")
def list_templates(include_inactive: bool = False, db: Session = Depends(get_db)):
    return template_service.list_templates(db, include_inactive=include_inactive)


@router.post(
    "/{template_id}/duplicate",
    response_model=RoundTemplateResponse,
    status_code=201,
    summary="Dupliquer un modèle",
)
def duplicate_template(template_id: uuid.UUID, data: RoundTemplateDuplicate, db: Session = Depends(get_db)):
    """Copie le modèle et l'ordre de ses clients. Sans nom fourni, suffixe « (copie) »."""
    return template_service.duplicate_template(db, template_id, data.name)


@router.post(
    "/{template_id}/deactivate",
    response_model=RoundTemplateResponse,
    summary="Désactiver un modèle",
)
def deactivate_template(template_id: uuid.UUID, db: Session = Depends(get_db)):
    """Les rondes déjà créées depuis ce modèle ne sont pas affectées."""
    return template_service.deactivate_template(db, template_id)
