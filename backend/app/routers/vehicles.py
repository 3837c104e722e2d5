"""
Router pour le parc de véhicules.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.vehicle import VehicleCreate, VehicleResponse
from app.services import vehicle_service

router = APIRouter(prefix="/api/v1/vehicles", tags=["Véhicules"])


@router.post("", response_model=VehicleResponse, status_code=201, summary="Enregistrer un véhicule")
def create_vehicle(data: VehicleCreate, db: Session = Depends(get_db)):
    return vehicle_service.create_vehicle(db, data)


@router.get("", response_model=List[VehicleResponse], summary="Lister les véhicules actifs")
def list_vehicles(db: Session = Depends(get_db)):
    return vehicle_service.list_vehicles(db)
