"""
Modèle SQLAlchemy pour les véhicules de patrouille.
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Uuid, func

from app.database import Base


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    license_plate = Column(String(20), unique=True, nullable=False)
    vehicle_type = Column(String(20), nullable=False)     # car, motorcycle
    current_odometer = Column(Integer, nullable=True)     # Dernier relevé connu (fin de ronde)
    active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
