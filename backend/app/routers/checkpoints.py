"""
Router pour les checkpoints : résolution d'un code, retrait, étiquette QR.
"""

import uuid

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.checkpoint import CheckpointResponse, CodeLookup, ResolvedCheckpoint
from app.services import checkpoint_resolver, checkpoint_service, qr_label_service

router = APIRouter(prefix="/api/v1/checkpoints", tags=["Checkpoints"])


@router.post("/resolve", response_model=ResolvedCheckpoint, summary="Résoudre un code de checkpoint")
def resolve_checkpoint(data: CodeLookup, db: Session = Depends(get_db)):
    """
    Nettoie la saisie (chiffres uniquement), vérifie sa forme puis retourne
    le checkpoint actif correspondant.

    422 MALFORMED_CODE si le code n'a pas 9 chiffres, 404 CHECKPOINT_NOT_FOUND
    si aucun checkpoint actif ne porte ce code.
    """
    return checkpoint_resolver.resolve_manual_entry(db, data.code)


@router.post(
    "/{checkpoint_id}/deactivate",
    response_model=CheckpointResponse,
    summary="Retirer un checkpoint",
)
def deactivate_checkpoint(checkpoint_id: uuid.UUID, db: Session = Depends(get_db)):
    """
    Retrait logique : le checkpoint n'est plus résolvable ni compté dans la progression.
    Son code reste réservé et n'est jamais réattribué.
    """
    return checkpoint_service.deactivate_checkpoint(db, checkpoint_id)


@router.get("/{checkpoint_id}/qr.png", summary="Étiquette QR d'un checkpoint")
def checkpoint_qr_label(checkpoint_id: uuid.UUID, db: Session = Depends(get_db)):
    png = qr_label_service.checkpoint_label_png(db, checkpoint_id)
    return Response(content=png, media_type="image/png")
