"""
Schémas Pydantic pour les rondes et leurs transitions d'état.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from app.models.round import VEHICLE_MODES
from app.schemas.incident import IncidentCreate


class GeoPoint(BaseModel):
    lat: float
    lng: float

    @field_validator("lat")
    @classmethod
    def valid_lat(cls, v: float) -> float:
        if not -90 <= v <= 90:
            raise ValueError("Latitude hors limites.")
        return v

    @field_validator("lng")
    @classmethod
    def valid_lng(cls, v: float) -> float:
        if not -180 <= v <= 180:
            raise ValueError("Longitude hors limites.")
        return v


class RoundCreate(BaseModel):
    """Création d'une ronde : depuis un modèle OU ad hoc pour un seul client."""
    template_id: Optional[uuid.UUID] = None
    client_id: Optional[uuid.UUID] = None
    assigned_operator_id: Optional[uuid.UUID] = None  # NULL = ronde libre
    created_by: Optional[uuid.UUID] = None

    @model_validator(mode="after")
    def template_xor_client(self) -> "RoundCreate":
        if (self.template_id is None) == (self.client_id is None):
            raise ValueError("Indiquer soit un modèle (template_id), soit un client (client_id).")
        return self


class RoundStart(BaseModel):
    """
    Prise en charge + activation en une seule étape atomique.
    Les contrôles métier (odomètre requis en véhicule...) sont faits par le service
    afin de remonter des erreurs ValidationFailed distinctes.
    """
    operator_id: uuid.UUID
    vehicle_mode: str
    vehicle_id: Optional[uuid.UUID] = None
    start_odometer: Optional[int] = None
    odometer_photo_url: Optional[str] = None
    location: Optional[GeoPoint] = None

    @field_validator("vehicle_mode")
    @classmethod
    def valid_vehicle_mode(cls, v: str) -> str:
        if v not in VEHICLE_MODES:
            raise ValueError(f"Mode invalide. Valeurs acceptées : {VEHICLE_MODES}")
        return v


class RoundComplete(BaseModel):
    operator_id: uuid.UUID
    end_odometer: Optional[int] = None
    location: Optional[GeoPoint] = None


class RoundEscalate(BaseModel):
    """Passage en incident ; l'incident associé est facultatif."""
    operator_id: uuid.UUID
    incident: Optional[IncidentCreate] = None


class RoundResume(BaseModel):
    operator_id: uuid.UUID


class RoundResponse(BaseModel):
    id: uuid.UUID
    template_id: Optional[uuid.UUID]
    client_id: Optional[uuid.UUID]
    status: str
    assigned_operator_id: Optional[uuid.UUID]
    vehicle_mode: Optional[str]
    vehicle_id: Optional[uuid.UUID]
    start_odometer: Optional[int]
    end_odometer: Optional[int]
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    created_at: Optional[datetime]

    model_config = {"from_attributes": True}
