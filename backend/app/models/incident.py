"""
Modèle SQLAlchemy pour les incidents signalés en ronde (ou hors ronde).
Un incident ne fait pas passer la ronde en statut "incident" : c'est une action explicite.
"""

import uuid
from sqlalchemy import Column, DateTime, Float, ForeignKey, String, Text, Uuid, func

from app.database import Base


class Incident(Base):
    __tablename__ = "incidents"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    round_id = Column(Uuid, ForeignKey("rounds.id", ondelete="SET NULL"), nullable=True, index=True)
    reported_by = Column(Uuid, ForeignKey("users.id"), nullable=True)

    incident_type = Column(String(20), nullable=False, default="other")  # security, maintenance, emergency, other
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(String(20), nullable=False, default="medium")      # low, medium, high, critical
    status = Column(String(20), nullable=False, default="open")          # open, investigating, resolved

    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    photo_url = Column(String(500), nullable=True)

    reported_at = Column(DateTime, nullable=False)
    resolved_at = Column(DateTime, nullable=True)
