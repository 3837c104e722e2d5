"""
Modèles SQLAlchemy pour les modèles de ronde et leur liste ordonnée de clients.

Un modèle référencé par des rondes n'est jamais modifié en place :
on le duplique pour obtenir une copie éditable.
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Uuid, func

from app.database import Base


class RoundTemplate(Base):
    __tablename__ = "round_templates"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    shift_type = Column(String(20), nullable=False, default="day")  # day, night
    requires_signature = Column(Boolean, default=False)
    active = Column(Boolean, default=True)
    created_by = Column(Uuid, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class RoundTemplateClient(Base):
    """Association modèle ↔ clients couverts, dans l'ordre de passage."""
    __tablename__ = "round_template_clients"

    template_id = Column(Uuid, ForeignKey("round_templates.id", ondelete="CASCADE"), primary_key=True)
    client_id = Column(Uuid, ForeignKey("clients.id", ondelete="CASCADE"), primary_key=True)
    order_index = Column(Integer, nullable=False)
