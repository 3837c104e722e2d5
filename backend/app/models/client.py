"""
Modèle SQLAlchemy pour les clients (sites surveillés).
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, Float, String, Text, Uuid, func

from app.database import Base


class Client(Base):
    """Site client couvert par les rondes ; porte un ou plusieurs checkpoints."""
    __tablename__ = "clients"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
