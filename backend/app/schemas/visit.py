"""
Schémas Pydantic pour l'enregistrement des visites de checkpoint
et la progression des rondes.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

VALID_SCAN_METHODS = {"QR_CAMERA", "MANUAL"}


class VisitCreate(BaseModel):
    """Un passage au checkpoint, identifié par son code (scanné ou saisi)."""
    operator_id: uuid.UUID
    code: str
    scan_method: str = "MANUAL"
    visited_at: Optional[datetime] = None  # Horodatage terrain, sinon maintenant
    photo_url: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    @field_validator("scan_method")
    @classmethod
    def valid_scan_method(cls, v: str) -> str:
        if v not in VALID_SCAN_METHODS:
            raise ValueError(f"Méthode de scan invalide. Valeurs acceptées : {VALID_SCAN_METHODS}")
        return v


class VisitResponse(BaseModel):
    id: uuid.UUID
    round_id: uuid.UUID
    checkpoint_id: uuid.UUID
    operator_id: Optional[uuid.UUID]
    visited_at: datetime
    scan_method: str
    photo_url: Optional[str]

    model_config = {"from_attributes": True}


class ClientProgress(BaseModel):
    """Avancement d'une ronde pour un client de son périmètre."""
    client_id: uuid.UUID
    client_name: str
    total_checkpoints: int
    completed_checkpoints: int
    is_complete: bool


class RoundProgress(BaseModel):
    round_id: uuid.UUID
    clients: List[ClientProgress]
    total_checkpoints: int
    completed_checkpoints: int
    percent: int
    is_complete: bool


class VisitRecordResult(BaseModel):
    """Résultat d'un enregistrement : duplicate=True si le checkpoint était déjà visité."""
    visit: VisitResponse
    duplicate: bool
    progress: RoundProgress
