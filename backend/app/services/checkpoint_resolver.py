"""
Résolution d'un code (scanné ou saisi) vers un checkpoint actif.
Aucun effet de bord : lecture seule.
"""

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import AmbiguousCheckpoint, CheckpointNotFound
from app.models.checkpoint import Checkpoint
from app.schemas.checkpoint import ResolvedCheckpoint
from app.services.code_validator import sanitize_manual_input, validate_manual_code

logger = logging.getLogger(__name__)


def resolve_code(db: Session, code: str) -> ResolvedCheckpoint:
    """
    Correspondance exacte sur manual_code parmi les checkpoints actifs.

    - 0 résultat  → CheckpointNotFound
    - >1 résultat → AmbiguousCheckpoint (violation de l'unicité, signalée et jamais arbitrée)
    """
    matches = db.execute(
        select(Checkpoint)
        .where(
            Checkpoint.manual_code == code,
            Checkpoint.active.is_(True),
        )
        .limit(2)
    ).scalars().all()

    if not matches:
        raise CheckpointNotFound(f"Aucun checkpoint actif ne correspond au code {code}.", manual_code=code)

    if len(matches) > 1:
        logger.error(
            "Intégrité rompue : plusieurs checkpoints actifs pour le code %s (%s)",
            code, ", ".join(str(cp.id) for cp in matches),
        )
        raise AmbiguousCheckpoint(
            f"Le code {code} correspond à plusieurs checkpoints. Contactez un administrateur.",
            manual_code=code,
        )

    checkpoint = matches[0]
    return ResolvedCheckpoint(
        checkpoint_id=checkpoint.id,
        client_id=checkpoint.client_id,
        name=checkpoint.name,
        manual_code=checkpoint.manual_code,
    )


def resolve_manual_entry(db: Session, raw: str) -> ResolvedCheckpoint:
    """Chaîne complète de la saisie manuelle : nettoyage, validation de forme, puis résolution."""
    code = validate_manual_code(sanitize_manual_input(raw))
    return resolve_code(db, code)
