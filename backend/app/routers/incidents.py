"""
Router pour les incidents signalés pendant (ou hors) une ronde.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.incident import IncidentCreate, IncidentResponse, IncidentStatusUpdate
from app.services import incident_service

router = APIRouter(prefix="/api/v1/incidents", tags=["Incidents"])


@router.post("", response_model=IncidentResponse, status_code=201, summary="Signaler un incident")
def report_incident(data: IncidentCreate, db: Session = Depends(get_db)):
    """Crée un incident ouvert. Ne modifie pas le statut de la ronde associée."""
    return incident_service.report_incident(db, data)


@router.patch("/{incident_id}/status", response_model=IncidentResponse, summary="Faire évoluer un incident")
def update_incident_status(incident_id: uuid.UUID, data: IncidentStatusUpdate, db: Session = Depends(get_db)):
    return incident_service.update_incident_status(db, incident_id, data.status)
