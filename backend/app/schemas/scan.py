"""
Schémas Pydantic pour les sessions de scan caméra.
"""

import uuid
from typing import Optional

from pydantic import BaseModel

from app.schemas.visit import VisitRecordResult


class ScanSessionOpen(BaseModel):
    device_id: str
    round_id: uuid.UUID
    operator_id: uuid.UUID
    camera_index: int = 0


class ManualCodeEntry(BaseModel):
    code: str


class ScanSessionStatus(BaseModel):
    device_id: str
    round_id: uuid.UUID
    state: str
    failure_reason: Optional[str] = None
    failure_count: int = 0


class ScanCaptureResult(BaseModel):
    """État de la session après capture ; `result` présent si un code a été enregistré."""
    session: ScanSessionStatus
    result: Optional[VisitRecordResult] = None
