"""
Tests unitaires pour les modèles de rondes et la création des rondes.
"""

import uuid

import pytest

from app.errors import ResourceNotFound, ValidationFailed
from app.models.round import ROUND_ACTIVE, ROUND_COMPLETED, ROUND_PENDING
from app.schemas.round import RoundCreate
from app.schemas.round_template import RoundTemplateCreate
from app.services.round_service import create_round, get_round, list_operator_rounds
from app.services.template_service import (
    create_template,
    deactivate_template,
    duplicate_template,
    list_templates,
)
from conftest import add_client, add_operator, add_round


# ----------------------------------------------------------------
# Modèles
# ----------------------------------------------------------------

def test_create_template_conserve_l_ordre(db_session):
    a, b, c = (add_client(db_session, name) for name in ("A", "B", "C"))
    created = create_template(db_session, RoundTemplateCreate(name="Nuit", shift_type="night", client_ids=[c.id, a.id, b.id]))

    assert created.client_ids == [c.id, a.id, b.id]
    assert created.shift_type == "night"
    assert created.active is True


def test_create_template_client_inconnu(db_session):
    a = add_client(db_session)
    with pytest.raises(ValidationFailed):
        create_template(db_session, RoundTemplateCreate(name="Nuit", client_ids=[a.id, uuid.uuid4()]))


def test_template_schema_sans_client():
    with pytest.raises(ValueError):
        RoundTemplateCreate(name="Vide", client_ids=[])


def test_template_schema_clients_en_double():
    cid = uuid.uuid4()
    with pytest.raises(ValueError):
        RoundTemplateCreate(name="Doublon", client_ids=[cid, cid])


def test_template_schema_poste_invalide():
    with pytest.raises(ValueError):
        RoundTemplateCreate(name="Soir", shift_type="evening", client_ids=[uuid.uuid4()])


def test_duplicate_template(db_session):
    a, b = add_client(db_session, "A"), add_client(db_session, "B")
    source = create_template(db_session, RoundTemplateCreate(name="Jour", client_ids=[a.id, b.id]))

    copy = duplicate_template(db_session, source.id)

    assert copy.id != source.id
    assert copy.name == "Jour (copie)"
    assert copy.client_ids == source.client_ids
    assert duplicate_template(db_session, source.id, "Jour bis").name == "Jour bis"


def test_deactivate_template_masque_de_la_liste(db_session):
    a = add_client(db_session)
    template = create_template(db_session, RoundTemplateCreate(name="Jour", client_ids=[a.id]))
    deactivate_template(db_session, template.id)

    assert list_templates(db_session) == []
    assert [t.id for t in list_templates(db_session, include_inactive=True)] == [template.id]


def test_deactivate_template_introuvable(db_session):
    with pytest.raises(ResourceNotFound):
        deactivate_template(db_session, uuid.uuid4())


# ----------------------------------------------------------------
# Rondes
# ----------------------------------------------------------------

def test_create_round_depuis_un_modele(db_session):
    a = add_client(db_session)
    template = create_template(db_session, RoundTemplateCreate(name="Jour", client_ids=[a.id]))

    created = create_round(db_session, RoundCreate(template_id=template.id))

    assert created.status == ROUND_PENDING
    assert created.assigned_operator_id is None


def test_create_round_modele_inactif(db_session):
    a = add_client(db_session)
    template = create_template(db_session, RoundTemplateCreate(name="Jour", client_ids=[a.id]))
    deactivate_template(db_session, template.id)

    with pytest.raises(ValidationFailed):
        create_round(db_session, RoundCreate(template_id=template.id))


def test_create_round_ad_hoc_client_inconnu(db_session):
    with pytest.raises(ResourceNotFound):
        create_round(db_session, RoundCreate(client_id=uuid.uuid4()))


def test_round_create_modele_ou_client():
    with pytest.raises(ValueError):
        RoundCreate()
    with pytest.raises(ValueError):
        RoundCreate(template_id=uuid.uuid4(), client_id=uuid.uuid4())


def test_get_round_introuvable(db_session):
    with pytest.raises(ResourceNotFound):
        get_round(db_session, uuid.uuid4())


def test_list_operator_rounds(db_session):
    client = add_client(db_session)
    me, other = add_operator(db_session, "Moi"), add_operator(db_session, "Autre")
    free = add_round(db_session, client=client)
    mine = add_round(db_session, client=client, operator=me, status=ROUND_ACTIVE)
    add_round(db_session, client=client, operator=other)
    add_round(db_session, client=client, operator=me, status=ROUND_COMPLETED)

    visible = {r.id for r in list_operator_rounds(db_session, me.id)}
    assert visible == {free.id, mine.id}
