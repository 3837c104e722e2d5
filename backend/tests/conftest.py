"""
Configuration partagée pour tous les tests.

- `client` : override la dépendance get_db par un MagicMock (aucune connexion PostgreSQL),
  pour les tests d'API qui patchent les services.
- `db_session` / `session_factory` : SQLite en mémoire partagée (StaticPool), pour
  les tests de services qui ont besoin de vraies écritures conditionnelles.
"""

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from unittest.mock import MagicMock

from app.database import Base, get_db
from app.main import app
from app.models.checkpoint import Checkpoint
from app.models.client import Client
from app.models.round import ROUND_PENDING, Round
from app.models.round_template import RoundTemplate, RoundTemplateClient
from app.models.user import User
from app.models.vehicle import Vehicle
from app.services.progress_service import scope_cache
from app.services.scan_session import scan_sessions


@pytest.fixture
def client():
    """Client HTTP de test avec la BDD mockée."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    scan_sessions.close_all()


@pytest.fixture
def session_factory():
    """Fabrique de sessions sur une base SQLite en mémoire, recréée pour chaque test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    scope_cache.clear()
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    scope_cache.clear()
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


# ----------------------------------------------------------------
# Jeu de données : deux clients, un modèle, une ronde en attente
# ----------------------------------------------------------------

def add_operator(db, name="Opérateur") -> User:
    user = User(email=f"{uuid.uuid4().hex[:8]}@patrol.test", name=name, role="operador", active=True)
    db.add(user)
    db.commit()
    return user


def add_client(db, name="Client", checkpoints=0, code_prefix=None) -> Client:
    """Ajoute un client et `checkpoints` checkpoints actifs aux codes déterministes."""
    client = Client(name=name, active=True)
    db.add(client)
    db.flush()
    prefix = code_prefix or str(uuid.uuid4().int)[:6]
    for index in range(1, checkpoints + 1):
        db.add(Checkpoint(
            client_id=client.id,
            name=f"{name} point {index}",
            manual_code=f"{prefix}{index:03d}",
            order_index=index,
            active=True,
        ))
    db.commit()
    return client


def add_template(db, clients, name="Tournée nuit") -> RoundTemplate:
    template = RoundTemplate(name=name, shift_type="night", active=True)
    db.add(template)
    db.flush()
    for index, c in enumerate(clients, start=1):
        db.add(RoundTemplateClient(template_id=template.id, client_id=c.id, order_index=index))
    db.commit()
    return template


def add_round(db, template=None, client=None, operator=None, status=ROUND_PENDING) -> Round:
    round_ = Round(
        template_id=template.id if template else None,
        client_id=client.id if client else None,
        assigned_operator_id=operator.id if operator else None,
        status=status,
    )
    db.add(round_)
    db.commit()
    return round_


def add_vehicle(db, plate="AB-123-CD", vehicle_type="car", odometer=None) -> Vehicle:
    vehicle = Vehicle(license_plate=plate, vehicle_type=vehicle_type, current_odometer=odometer, active=True)
    db.add(vehicle)
    db.commit()
    return vehicle


@pytest.fixture
def patrol(db_session):
    """
    Deux clients (A : 2 checkpoints 100000001-2, B : 1 checkpoint 200000001),
    un modèle A→B, une ronde libre en attente et un opérateur.
    """
    client_a = add_client(db_session, "Entrepôt Nord", checkpoints=2, code_prefix="100000")
    client_b = add_client(db_session, "Banque Centre", checkpoints=1, code_prefix="200000")
    template = add_template(db_session, [client_a, client_b])
    round_ = add_round(db_session, template=template)
    operator = add_operator(db_session)
    return {
        "client_a": client_a,
        "client_b": client_b,
        "template": template,
        "round": round_,
        "operator": operator,
        "codes_a": ["100000001", "100000002"],
        "codes_b": ["200000001"],
    }
