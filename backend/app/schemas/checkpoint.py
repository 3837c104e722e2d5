"""
Schémas Pydantic pour les clients et leurs checkpoints.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class ClientCreate(BaseModel):
    name: str
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le nom du client ne peut pas être vide.")
        return v.strip()


class ClientResponse(BaseModel):
    id: uuid.UUID
    name: str
    address: Optional[str]
    lat: Optional[float]
    lng: Optional[float]
    active: bool

    model_config = {"from_attributes": True}


class CheckpointCreate(BaseModel):
    """Données nécessaires pour créer un checkpoint sur un site client."""
    name: str
    description: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    order_index: Optional[int] = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le nom du checkpoint ne peut pas être vide.")
        return v.strip()


class CheckpointResponse(BaseModel):
    """Réponse renvoyée après création ou lecture d'un checkpoint."""
    id: uuid.UUID
    client_id: uuid.UUID
    name: str
    description: Optional[str]
    lat: Optional[float]
    lng: Optional[float]
    manual_code: str
    order_index: int
    active: bool
    created_at: Optional[datetime]

    model_config = {"from_attributes": True}


class CodeLookup(BaseModel):
    """Code saisi ou scanné à résoudre."""
    code: str


class ResolvedCheckpoint(BaseModel):
    """Identité d'un checkpoint résolu à partir de son code."""
    checkpoint_id: uuid.UUID
    client_id: uuid.UUID
    name: str
    manual_code: str
