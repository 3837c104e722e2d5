"""
Taxonomie fermée des erreurs métier.

Chaque variante porte un `code` stable (assertable par les tests et traduit
par l'interface) et le statut HTTP associé. Toutes héritent de ValueError.
"""

from enum import Enum
from typing import Any, Optional


class PatrolError(ValueError):
    """Base de toutes les erreurs métier présentées à l'opérateur."""

    code = "PATROL_ERROR"
    status_code = 400

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {**self.details, "detail": self.message, "code": self.code}


# --- Saisie ---

class MalformedInput(PatrolError):
    """Échec de validation locale : la requête n'atteint jamais la base."""
    code = "MALFORMED_INPUT"
    status_code = 422


class MalformedCode(MalformedInput):
    """Code manuel mal formé (longueur ou caractères)."""
    code = "MALFORMED_CODE"


class ValidationFailed(PatrolError):
    """Donnée bien formée mais refusée par une règle métier (ex. odomètre)."""
    code = "VALIDATION_FAILED"
    status_code = 422


# --- Résolution ---

class CheckpointNotFound(PatrolError):
    """Aucun checkpoint actif ne porte ce code."""
    code = "CHECKPOINT_NOT_FOUND"
    status_code = 404


class AmbiguousCheckpoint(PatrolError):
    """Plusieurs checkpoints actifs partagent le même code (intégrité rompue)."""
    code = "AMBIGUOUS_CHECKPOINT"
    status_code = 409


class ResourceNotFound(PatrolError):
    code = "RESOURCE_NOT_FOUND"
    status_code = 404


class CodeGenerationFailed(PatrolError):
    """Aucun code manuel libre trouvé après plusieurs tirages."""
    code = "CODE_GENERATION_FAILED"
    status_code = 503


# --- Cycle de vie des rondes ---

class AlreadyClaimed(PatrolError):
    """Un autre opérateur a pris la ronde."""
    code = "ALREADY_CLAIMED"
    status_code = 409


class NotPending(PatrolError):
    """La ronde n'est plus en attente (déjà active, terminée ou en incident)."""
    code = "NOT_PENDING"
    status_code = 409


class IllegalTransition(PatrolError):
    code = "ILLEGAL_TRANSITION"
    status_code = 409


class IncompleteRound(PatrolError):
    """Des checkpoints obligatoires n'ont pas encore été visités."""
    code = "INCOMPLETE_ROUND"
    status_code = 409


class OutOfScope(PatrolError):
    """Le checkpoint n'appartient pas au périmètre de la ronde."""
    code = "OUT_OF_SCOPE"
    status_code = 422


# --- Périphériques ---

class ScanFailureReason(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    NO_DEVICE = "no_device"
    DEVICE_BUSY = "device_busy"
    UNSUPPORTED = "unsupported"
    TIMEOUT = "timeout"


class DeviceUnavailable(PatrolError):
    """Caméra indisponible : permission refusée, absente, occupée, délai dépassé..."""
    code = "DEVICE_UNAVAILABLE"
    status_code = 503

    def __init__(self, message: str, reason: ScanFailureReason, **details: Any) -> None:
        super().__init__(message, reason=reason.value, **details)
        self.reason = reason


def not_found(entity: str, entity_id: Optional[Any] = None) -> ResourceNotFound:
    """Construit l'erreur 404 standard pour une entité absente."""
    if entity_id is None:
        return ResourceNotFound(f"{entity} introuvable.", entity=entity)
    return ResourceNotFound(f"{entity} {entity_id} introuvable.", entity=entity)
