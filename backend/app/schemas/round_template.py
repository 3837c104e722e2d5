"""
Schémas Pydantic pour les modèles de ronde.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

VALID_SHIFT_TYPES = {"day", "night"}


class RoundTemplateCreate(BaseModel):
    name: str
    shift_type: str = "day"
    requires_signature: bool = False
    client_ids: List[uuid.UUID]  # Ordre de passage

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le nom du modèle ne peut pas être vide.")
        return v.strip()

    @field_validator("shift_type")
    @classmethod
    def valid_shift_type(cls, v: str) -> str:
        if v not in VALID_SHIFT_TYPES:
            raise ValueError(f"Type de poste invalide. Valeurs acceptées : {VALID_SHIFT_TYPES}")
        return v

    @field_validator("client_ids")
    @classmethod
    def at_least_one_unique_client(cls, v: List[uuid.UUID]) -> List[uuid.UUID]:
        if not v:
            raise ValueError("Au moins un client doit être sélectionné.")
        if len(set(v)) != len(v):
            raise ValueError("Un client ne peut figurer qu'une fois dans un modèle.")
        return v


class RoundTemplateDuplicate(BaseModel):
    name: Optional[str] = None


class RoundTemplateResponse(BaseModel):
    id: uuid.UUID
    name: str
    shift_type: str
    requires_signature: bool
    active: bool
    client_ids: List[uuid.UUID]
    created_at: Optional[datetime]
