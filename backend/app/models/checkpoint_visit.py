"""
Modèle SQLAlchemy pour les visites de checkpoint (preuve de passage).

Append-only : une visite n'est jamais modifiée. La contrainte unique
(round_id, checkpoint_id) garantit qu'un re-scan ou un retry réseau ne crée
pas de seconde ligne, même entre deux sessions concurrentes.
"""

import uuid
from sqlalchemy import Column, DateTime, Float, ForeignKey, String, UniqueConstraint, Uuid, func

from app.database import Base


class CheckpointVisit(Base):
    __tablename__ = "checkpoint_visits"
    __table_args__ = (
        UniqueConstraint("round_id", "checkpoint_id", name="uq_checkpoint_visits_round_checkpoint"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    round_id = Column(Uuid, ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False, index=True)
    checkpoint_id = Column(Uuid, ForeignKey("checkpoints.id"), nullable=False)
    operator_id = Column(Uuid, ForeignKey("users.id"), nullable=True)

    visited_at = Column(DateTime, nullable=False)
    scan_method = Column(String(20), nullable=False)  # QR_CAMERA, MANUAL
    photo_url = Column(String(500), nullable=True)    # Référence retournée par le stockage
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
