"""
Tests unitaires pour les incidents et le parc de véhicules.
"""

import uuid

import pytest

from app.errors import IllegalTransition, ResourceNotFound, ValidationFailed
from app.schemas.incident import IncidentCreate
from app.schemas.vehicle import VehicleCreate
from app.services.incident_service import list_round_incidents, report_incident, update_incident_status
from app.services.vehicle_service import create_vehicle, list_vehicles
from conftest import add_client, add_round


# ----------------------------------------------------------------
# Incidents
# ----------------------------------------------------------------

def test_report_incident_ouvert(db_session):
    round_ = add_round(db_session, client=add_client(db_session))
    incident = report_incident(db_session, IncidentCreate(title=" Vitre brisée ", round_id=round_.id, priority="high"))

    assert incident.title == "Vitre brisée"
    assert incident.status == "open"
    assert incident.resolved_at is None
    assert [i.id for i in list_round_incidents(db_session, round_.id)] == [incident.id]


def test_report_incident_ronde_inconnue(db_session):
    with pytest.raises(ResourceNotFound):
        report_incident(db_session, IncidentCreate(title="Alarme", round_id=uuid.uuid4()))


def test_incident_sans_ronde(db_session):
    incident = report_incident(db_session, IncidentCreate(title="Alarme", incident_type="emergency"))
    assert incident.round_id is None


def test_incident_open_investigating_resolved(db_session):
    incident = report_incident(db_session, IncidentCreate(title="Alarme"))

    assert update_incident_status(db_session, incident.id, "investigating").status == "investigating"
    resolved = update_incident_status(db_session, incident.id, "resolved")
    assert resolved.status == "resolved"
    assert resolved.resolved_at is not None


def test_incident_open_resolved_direct(db_session):
    incident = report_incident(db_session, IncidentCreate(title="Alarme"))
    assert update_incident_status(db_session, incident.id, "resolved").status == "resolved"


def test_incident_resolu_fige(db_session):
    incident = report_incident(db_session, IncidentCreate(title="Alarme"))
    update_incident_status(db_session, incident.id, "resolved")

    with pytest.raises(IllegalTransition):
        update_incident_status(db_session, incident.id, "investigating")


def test_incident_retour_a_open_refuse(db_session):
    incident = report_incident(db_session, IncidentCreate(title="Alarme"))
    update_incident_status(db_session, incident.id, "investigating")
    with pytest.raises(IllegalTransition):
        update_incident_status(db_session, incident.id, "open")


@pytest.mark.parametrize("field,value", [("incident_type", "vol"), ("priority", "urgente"), ("title", "  ")])
def test_incident_schema_invalide(field, value):
    data = {"title": "Alarme", field: value}
    with pytest.raises(ValueError):
        IncidentCreate(**data)


# ----------------------------------------------------------------
# Véhicules
# ----------------------------------------------------------------

def test_create_vehicle_plaque_normalisee(db_session):
    vehicle = create_vehicle(db_session, VehicleCreate(license_plate=" ab-123-cd ", vehicle_type="car", current_odometer=1000))
    assert vehicle.license_plate == "AB-123-CD"
    assert [v.id for v in list_vehicles(db_session)] == [vehicle.id]


def test_create_vehicle_plaque_en_double(db_session):
    create_vehicle(db_session, VehicleCreate(license_plate="AB-123-CD", vehicle_type="car"))
    with pytest.raises(ValidationFailed):
        create_vehicle(db_session, VehicleCreate(license_plate="ab-123-cd", vehicle_type="motorcycle"))


def test_vehicle_a_pied_refuse():
    with pytest.raises(ValueError):
        VehicleCreate(license_plate="AB-123-CD", vehicle_type="on_foot")
