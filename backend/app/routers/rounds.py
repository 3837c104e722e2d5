"""
Router pour les rondes : création, prise en charge, visites, progression, clôture.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.incident import IncidentResponse
from app.schemas.round import RoundComplete, RoundCreate, RoundEscalate, RoundResponse, RoundResume, RoundStart
from app.schemas.visit import RoundProgress, VisitCreate, VisitRecordResult, VisitResponse
from app.services import incident_service, progress_service, round_lifecycle, round_service, visit_service

router = APIRouter(prefix="/api/v1/rounds", tags=["Rondes"])


@router.post("", response_model=RoundResponse, status_code=201, summary="Créer une ronde")
def create_round(data: RoundCreate, db: Session = Depends(get_db)):
    """Ronde en attente, depuis un modèle actif ou ad hoc pour un seul client."""
    return round_service.create_round(db, data)


@router.get("", response_model=List[RoundResponse], summary="Rondes visibles par un opérateur")
def list_rounds(operator_id: uuid.UUID, db: Session = Depends(get_db)):
    """Rondes assignées à l'opérateur ou libres, en attente, actives ou en incident."""
    return round_service.list_operator_rounds(db, operator_id)


@router.get("/{round_id}", response_model=RoundResponse, summary="Détail d'une ronde")
def get_round(round_id: uuid.UUID, db: Session = Depends(get_db)):
    return round_service.get_round(db, round_id)


@router.post("/{round_id}/start", response_model=RoundResponse, summary="Prendre en charge et démarrer une ronde")
def start_round(round_id: uuid.UUID, data: RoundStart, db: Session = Depends(get_db)):
    """
    Prise en charge et activation atomiques : parmi plusieurs opérateurs
    simultanés, un seul réussit.

    409 ALREADY_CLAIMED si un autre opérateur a pris la ronde, 409 NOT_PENDING
    si elle n'est plus en attente, 422 VALIDATION_FAILED si les relevés
    véhicule sont incomplets.
    """
    return round_lifecycle.start_round(db, round_id, data)


@router.post("/{round_id}/complete", response_model=RoundResponse, summary="Terminer une ronde")
def complete_round(round_id: uuid.UUID, data: RoundComplete, db: Session = Depends(get_db)):
    """
    Refusé (409 INCOMPLETE_ROUND) tant qu'un checkpoint actif du périmètre
    n'a pas été visité ; la réponse liste les clients incomplets.
    """
    return round_lifecycle.complete_round(db, round_id, data)


@router.post("/{round_id}/incident", response_model=RoundResponse, summary="Passer une ronde en incident")
def escalate_round(round_id: uuid.UUID, data: RoundEscalate, db: Session = Depends(get_db)):
    return round_lifecycle.escalate_round(db, round_id, data)


@router.post("/{round_id}/resume", response_model=RoundResponse, summary="Reprendre une ronde en incident")
def resume_round(round_id: uuid.UUID, data: RoundResume, db: Session = Depends(get_db)):
    return round_lifecycle.resume_round(db, round_id, data)


@router.get("/{round_id}/progress", response_model=RoundProgress, summary="Progression d'une ronde")
def get_progress(round_id: uuid.UUID, db: Session = Depends(get_db)):
    """Avancement par client et global, recalculé à chaque lecture."""
    return progress_service.compute_round_progress(db, round_id)


@router.post("/{round_id}/visits", response_model=VisitRecordResult, summary="Enregistrer un passage")
def record_visit(round_id: uuid.UUID, data: VisitCreate, db: Session = Depends(get_db)):
    """
    Enregistre la visite du checkpoint identifié par son code (caméra ou saisie).
    Un re-scan du même checkpoint ne crée pas de doublon : duplicate=True.
    """
    return visit_service.record_visit(db, round_id, data)


@router.get("/{round_id}/visits", response_model=List[VisitResponse], summary="Visites d'une ronde")
def list_visits(round_id: uuid.UUID, db: Session = Depends(get_db)):
    return visit_service.list_round_visits(db, round_id)


@router.get("/{round_id}/incidents", response_model=List[IncidentResponse], summary="Incidents d'une ronde")
def list_incidents(round_id: uuid.UUID, db: Session = Depends(get_db)):
    return incident_service.list_round_incidents(db, round_id)
