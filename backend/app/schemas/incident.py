"""
Schémas Pydantic pour les incidents.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

VALID_INCIDENT_TYPES = {"security", "maintenance", "emergency", "other"}
VALID_PRIORITIES = {"low", "medium", "high", "critical"}
VALID_INCIDENT_STATUSES = {"open", "investigating", "resolved"}


class IncidentCreate(BaseModel):
    title: str
    description: Optional[str] = None
    incident_type: str = "other"
    priority: str = "medium"
    round_id: Optional[uuid.UUID] = None
    reported_by: Optional[uuid.UUID] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    photo_url: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le titre de l'incident ne peut pas être vide.")
        return v.strip()

    @field_validator("incident_type")
    @classmethod
    def valid_type(cls, v: str) -> str:
        if v not in VALID_INCIDENT_TYPES:
            raise ValueError(f"Type invalide. Valeurs acceptées : {VALID_INCIDENT_TYPES}")
        return v

    @field_validator("priority")
    @classmethod
    def valid_priority(cls, v: str) -> str:
        if v not in VALID_PRIORITIES:
            raise ValueError(f"Priorité invalide. Valeurs acceptées : {VALID_PRIORITIES}")
        return v


class IncidentStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: str) -> str:
        if v not in VALID_INCIDENT_STATUSES:
            raise ValueError(f"Statut invalide. Valeurs acceptées : {VALID_INCIDENT_STATUSES}")
        return v


class IncidentResponse(BaseModel):
    id: uuid.UUID
    round_id: Optional[uuid.UUID]
    incident_type: str
    title: str
    description: Optional[str]
    priority: str
    status: str
    reported_at: datetime
    resolved_at: Optional[datetime]

    model_config = {"from_attributes": True}
