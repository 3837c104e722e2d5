"""
Coordination de la prise en charge des rondes.

Plusieurs opérateurs voient la même ronde libre et peuvent appuyer sur "démarrer"
au même moment : un seul doit gagner. La prise en charge et l'activation sont
faites par un unique UPDATE conditionnel (compare-and-swap sur status +
assigned_operator_id) ; seul un rowcount de 1 vaut succès. Il n'existe donc pas
d'état intermédiaire "prise mais jamais démarrée".
"""

import uuid
import logging
from datetime import datetime, timezone

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import AlreadyClaimed, NotPending, PatrolError, ValidationFailed, not_found
from app.models.round import MOTORIZED_MODES, ROUND_ACTIVE, ROUND_PENDING, Round
from app.models.vehicle import Vehicle
from app.schemas.round import RoundStart

logger = logging.getLogger(__name__)


def claim_and_start(db: Session, round_id: uuid.UUID, data: RoundStart) -> Round:
    """
    Prend en charge une ronde en attente et l'active en une seule écriture.

    Erreurs :
    - ValidationFailed : odomètre, photo ou véhicule manquant/invalide en mode motorisé
    - AlreadyClaimed   : un autre opérateur a gagné la course (ou la ronde lui est assignée)
    - NotPending       : la ronde est déjà active, terminée ou en incident
    - ResourceNotFound : ronde inexistante
    """
    validate_start(db, data)

    motorized = data.vehicle_mode in MOTORIZED_MODES
    values = {
        "status": ROUND_ACTIVE,
        "assigned_operator_id": data.operator_id,
        "vehicle_mode": data.vehicle_mode,
        "vehicle_id": data.vehicle_id if motorized else None,
        "start_odometer": data.start_odometer if motorized else None,
        "start_odometer_photo_url": data.odometer_photo_url if motorized else None,
        "start_lat": data.location.lat if data.location else None,
        "start_lng": data.location.lng if data.location else None,
        "started_at": datetime.now(timezone.utc),
    }

    result = db.execute(
        update(Round)
        .where(
            Round.id == round_id,
            Round.status == ROUND_PENDING,
            or_(
                Round.assigned_operator_id.is_(None),
                Round.assigned_operator_id == data.operator_id,
            ),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        db.rollback()
        raise classify_claim_failure(db, round_id, data.operator_id)

    db.commit()
    logger.info(
        "Ronde %s prise en charge par %s (mode %s)",
        round_id, data.operator_id, data.vehicle_mode,
    )
    return db.get(Round, round_id, populate_existing=True)


def classify_claim_failure(db: Session, round_id: uuid.UUID, operator_id: uuid.UUID) -> PatrolError:
    """Relit la ronde (hors cache de session) pour expliquer l'échec de l'écriture conditionnelle."""
    round_ = db.get(Round, round_id, populate_existing=True)
    if round_ is None:
        return not_found("Ronde", round_id)

    if round_.assigned_operator_id is not None and round_.assigned_operator_id != operator_id:
        logger.info("Ronde %s déjà prise par %s (demandeur %s)", round_id, round_.assigned_operator_id, operator_id)
        return AlreadyClaimed(
            "Cette ronde a déjà été prise par un autre opérateur.",
            round_id=str(round_id),
        )

    if round_.status != ROUND_PENDING:
        return NotPending(
            f"La ronde n'est plus en attente (statut {round_.status}).",
            round_id=str(round_id),
            status=round_.status,
        )

    # Écriture refusée mais relecture en attente et libre : course perdue puis annulée ailleurs
    return AlreadyClaimed("La ronde vient d'être modifiée par une autre session.", round_id=str(round_id))


def validate_start(db: Session, data: RoundStart) -> None:
    """Contrôles préalables au démarrage ; aucune écriture."""
    if data.vehicle_mode in MOTORIZED_MODES:
        if data.vehicle_id is None:
            raise ValidationFailed("Un véhicule doit être sélectionné pour une ronde motorisée.", field="vehicle_id")
        if data.start_odometer is None:
            raise ValidationFailed("Le relevé d'odomètre de départ est obligatoire.", field="start_odometer")
        if data.start_odometer < 0:
            raise ValidationFailed("Le relevé d'odomètre doit être positif.", field="start_odometer")
        if not (data.odometer_photo_url or "").strip():
            raise ValidationFailed("La photo de l'odomètre est obligatoire.", field="odometer_photo_url")

        vehicle = db.get(Vehicle, data.vehicle_id)
        if vehicle is None or not vehicle.active:
            raise ValidationFailed("Véhicule introuvable ou inactif.", field="vehicle_id")
        if vehicle.vehicle_type != data.vehicle_mode:
            raise ValidationFailed(
                f"Le véhicule sélectionné est de type {vehicle.vehicle_type}, pas {data.vehicle_mode}.",
                field="vehicle_mode",
            )
        if vehicle.current_odometer is not None and data.start_odometer < vehicle.current_odometer:
            logger.warning(
                "Odomètre de départ %d inférieur au dernier relevé %d (véhicule %s)",
                data.start_odometer, vehicle.current_odometer, vehicle.id,
            )

    if data.location is None:
        if settings.GEOLOCATION_REQUIRED:
            raise ValidationFailed("La position GPS est obligatoire pour démarrer la ronde.", field="location")
        logger.warning("Démarrage de ronde sans position GPS (opérateur %s)", data.operator_id)
