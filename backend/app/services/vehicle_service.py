"""
Service métier pour les véhicules de patrouille.
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import ValidationFailed
from app.models.vehicle import Vehicle
from app.schemas.vehicle import VehicleCreate, VehicleResponse

logger = logging.getLogger(__name__)


def create_vehicle(db: Session, data: VehicleCreate) -> VehicleResponse:
    existing = db.execute(
        select(Vehicle).where(Vehicle.license_plate == data.license_plate)
    ).scalar()
    if existing:
        raise ValidationFailed(f"Le véhicule {data.license_plate} existe déjà.", field="license_plate")

    vehicle = Vehicle(
        license_plate=data.license_plate,
        vehicle_type=data.vehicle_type,
        current_odometer=data.current_odometer,
        active=True,
    )
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)
    logger.info("Véhicule créé : %s (%s)", vehicle.license_plate, vehicle.vehicle_type)
    return VehicleResponse.model_validate(vehicle)


def list_vehicles(db: Session) -> List[VehicleResponse]:
    vehicles = db.execute(
        select(Vehicle).where(Vehicle.active.is_(True)).order_by(Vehicle.license_plate)
    ).scalars().all()
    return [VehicleResponse.model_validate(v) for v in vehicles]
