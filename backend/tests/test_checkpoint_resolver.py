"""
Tests unitaires pour la résolution d'un code vers un checkpoint actif.
"""

import uuid
from unittest.mock import MagicMock

import pytest

from app.errors import AmbiguousCheckpoint, CheckpointNotFound, MalformedCode
from app.models.checkpoint import Checkpoint
from app.services.checkpoint_resolver import resolve_code, resolve_manual_entry
from app.services.checkpoint_service import deactivate_checkpoint
from conftest import add_client


def make_checkpoint(code="123456789"):
    cp = MagicMock(spec=Checkpoint)
    cp.id = uuid.uuid4()
    cp.client_id = uuid.uuid4()
    cp.name = "Portail"
    cp.manual_code = code
    return cp


def make_db(matches):
    db = MagicMock()
    db.execute.return_value.scalars.return_value.all.return_value = matches
    return db


def test_resolve_code_connu(db_session):
    client = add_client(db_session, "Entrepôt Nord", checkpoints=2, code_prefix="100000")
    resolved = resolve_code(db_session, "100000002")
    assert resolved.client_id == client.id
    assert resolved.manual_code == "100000002"
    assert resolved.name == "Entrepôt Nord point 2"


def test_resolve_code_inconnu(db_session):
    add_client(db_session, checkpoints=1, code_prefix="100000")
    with pytest.raises(CheckpointNotFound) as exc:
        resolve_code(db_session, "999999999")
    assert exc.value.status_code == 404


def test_resolve_ignore_les_checkpoints_retires(db_session):
    add_client(db_session, checkpoints=1, code_prefix="100000")
    checkpoint = db_session.query(Checkpoint).one()
    deactivate_checkpoint(db_session, checkpoint.id)

    with pytest.raises(CheckpointNotFound):
        resolve_code(db_session, "100000001")


def test_resolve_plusieurs_correspondances_ambigu():
    """Deux checkpoints actifs pour un même code : signalé, jamais arbitré."""
    db = make_db([make_checkpoint(), make_checkpoint()])
    with pytest.raises(AmbiguousCheckpoint) as exc:
        resolve_code(db, "123456789")
    assert exc.value.code == "AMBIGUOUS_CHECKPOINT"


def test_resolve_manual_entry_nettoie_la_saisie():
    cp = make_checkpoint("123456789")
    db = make_db([cp])
    resolved = resolve_manual_entry(db, "123 456 789")
    assert resolved.checkpoint_id == cp.id


def test_resolve_manual_entry_code_court_sans_requete():
    """Un code mal formé n'atteint jamais la base."""
    db = MagicMock()
    with pytest.raises(MalformedCode):
        resolve_manual_entry(db, "12345")
    db.execute.assert_not_called()
