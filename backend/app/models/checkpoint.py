"""
Modèle SQLAlchemy pour les checkpoints (points physiques vérifiés sur un site client).

Le manual_code (9 chiffres) est l'identifiant de secours imprimé sous le QR code.
Il est unique sur toute la table, checkpoints retirés compris : un code retiré
n'est jamais réattribué tant que l'historique des visites le référence.
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, Uuid, func

from app.database import Base


class Checkpoint(Base):
    """Point de contrôle physique rattaché à un client."""
    __tablename__ = "checkpoints"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id = Column(Uuid, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    manual_code = Column(String(9), unique=True, nullable=False, index=True)
    order_index = Column(Integer, nullable=False, default=1)

    active = Column(Boolean, default=True, nullable=False)
    deactivated_at = Column(DateTime, nullable=True)  # NULL = checkpoint en service

    created_at = Column(DateTime, server_default=func.now())
