"""
Modèle SQLAlchemy pour les rondes (une mission de patrouille).

Cycle de vie : pending → active → completed | incident (incident → active possible).
Une ronde sans template_id est une ronde "ad hoc" liée directement à client_id.
"""

import uuid
from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Uuid, func

from app.database import Base

ROUND_PENDING = "pending"
ROUND_ACTIVE = "active"
ROUND_COMPLETED = "completed"
ROUND_INCIDENT = "incident"
ROUND_STATUSES = (ROUND_PENDING, ROUND_ACTIVE, ROUND_COMPLETED, ROUND_INCIDENT)

VEHICLE_MODES = ("car", "motorcycle", "on_foot")
MOTORIZED_MODES = ("car", "motorcycle")


class Round(Base):
    __tablename__ = "rounds"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    template_id = Column(Uuid, ForeignKey("round_templates.id"), nullable=True)
    client_id = Column(Uuid, ForeignKey("clients.id"), nullable=True)  # Ronde ad hoc uniquement
    status = Column(String(20), nullable=False, default=ROUND_PENDING)

    # NULL = ronde non attribuée, visible de tous les opérateurs éligibles
    assigned_operator_id = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)

    # Liaison véhicule, renseignée uniquement à l'activation
    vehicle_mode = Column(String(20), nullable=True)  # car, motorcycle, on_foot
    vehicle_id = Column(Uuid, ForeignKey("vehicles.id"), nullable=True)
    start_odometer = Column(Integer, nullable=True)
    start_odometer_photo_url = Column(String(500), nullable=True)
    end_odometer = Column(Integer, nullable=True)

    start_lat = Column(Float, nullable=True)
    start_lng = Column(Float, nullable=True)
    end_lat = Column(Float, nullable=True)
    end_lng = Column(Float, nullable=True)

    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    created_by = Column(Uuid, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
