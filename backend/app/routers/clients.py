"""
Router pour les clients (sites surveillés) et la création de leurs checkpoints.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.checkpoint import CheckpointCreate, CheckpointResponse, ClientCreate, ClientResponse
from app.services import checkpoint_service

router = APIRouter(prefix="/api/v1/clients", tags=["Clients"])


@router.post("", response_model=ClientResponse, status_code=201, summary="Créer un client")
def create_client(data: ClientCreate, db: Session = Depends(get_db)):
    return checkpoint_service.create_client(db, data)


@router.get("", response_model=List[ClientResponse], summary="Lister les clients actifs")
def list_clients(db: Session = Depends(get_db)):
    return checkpoint_service.list_clients(db)


@router.post(
    "/{client_id}/checkpoints",
    response_model=CheckpointResponse,
    status_code=201,
    summary="Créer un checkpoint sur un site client",
)
def create_checkpoint(client_id: uuid.UUID, data: CheckpointCreate, db: Session = Depends(get_db)):
    """
    Crée un checkpoint actif et lui attribue un code manuel unique à 9 chiffres.
    Les rondes en cours sur ce client voient le nouveau checkpoint dès la requête suivante.

    Retourne 404 si le client est introuvable, 422 s'il est inactif.
    """
    return checkpoint_service.create_checkpoint(db, client_id, data)


@router.get(
    "/{client_id}/checkpoints",
    response_model=List[CheckpointResponse],
    summary="Lister les checkpoints actifs d'un client",
)
def list_checkpoints(client_id: uuid.UUID, db: Session = Depends(get_db)):
    return checkpoint_service.list_client_checkpoints(db, client_id)
