"""
Schémas Pydantic pour les véhicules.
"""

import uuid
from typing import Optional

from pydantic import BaseModel, field_validator

from app.models.round import MOTORIZED_MODES


class VehicleCreate(BaseModel):
    license_plate: str
    vehicle_type: str
    current_odometer: Optional[int] = None

    @field_validator("license_plate")
    @classmethod
    def plate_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("La plaque ne peut pas être vide.")
        return v.strip().upper()

    @field_validator("vehicle_type")
    @classmethod
    def valid_type(cls, v: str) -> str:
        if v not in MOTORIZED_MODES:
            raise ValueError(f"Type invalide. Valeurs acceptées : {MOTORIZED_MODES}")
        return v


class VehicleResponse(BaseModel):
    id: uuid.UUID
    license_plate: str
    vehicle_type: str
    current_odometer: Optional[int]
    active: bool

    model_config = {"from_attributes": True}
