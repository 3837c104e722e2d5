"""
Agrégation de la progression des rondes (par client et globale).

Le périmètre d'une ronde (clients du modèle + checkpoints actifs de chacun) est
mis en cache une fois par ronde ; seules les visites sont relues à chaque appel.
Le cache est invalidé de façon ciblée : par client quand un checkpoint est créé
ou retiré, par ronde quand elle est terminée.

Invariant : completed_checkpoints ≤ total_checkpoints pour chaque client.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import not_found
from app.models.checkpoint import Checkpoint
from app.models.checkpoint_visit import CheckpointVisit
from app.models.client import Client
from app.models.round import Round
from app.models.round_template import RoundTemplateClient
from app.schemas.visit import ClientProgress, RoundProgress

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoundScope:
    """Périmètre figé d'une ronde : clients ordonnés et checkpoints actifs par client."""
    round_id: uuid.UUID
    client_ids: Tuple[uuid.UUID, ...]
    client_names: Dict[uuid.UUID, str] = field(default_factory=dict)
    checkpoints_by_client: Dict[uuid.UUID, FrozenSet[uuid.UUID]] = field(default_factory=dict)

    def contains_client(self, client_id: uuid.UUID) -> bool:
        return client_id in self.client_ids

    def client_of(self, checkpoint_id: uuid.UUID) -> Optional[uuid.UUID]:
        for client_id, checkpoint_ids in self.checkpoints_by_client.items():
            if checkpoint_id in checkpoint_ids:
                return client_id
        return None


class ScopeCache:
    """Cache mémoire des périmètres, partagé entre les threads du serveur."""

    def __init__(self) -> None:
        self._scopes: Dict[uuid.UUID, RoundScope] = {}
        self._lock = threading.Lock()

    def get(self, round_id: uuid.UUID) -> Optional[RoundScope]:
        with self._lock:
            return self._scopes.get(round_id)

    def put(self, scope: RoundScope) -> None:
        with self._lock:
            self._scopes[scope.round_id] = scope

    def forget(self, round_id: uuid.UUID) -> None:
        with self._lock:
            self._scopes.pop(round_id, None)

    def invalidate_client(self, client_id: uuid.UUID) -> int:
        """Supprime les périmètres qui couvrent ce client ; retourne leur nombre."""
        with self._lock:
            stale = [rid for rid, scope in self._scopes.items() if scope.contains_client(client_id)]
            for rid in stale:
                del self._scopes[rid]
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._scopes.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._scopes)


scope_cache = ScopeCache()


def scope_client_ids(db: Session, round_: Round) -> List[uuid.UUID]:
    """Clients couverts par la ronde : ceux du modèle (ordonnés) ou le client unique ad hoc."""
    if round_.template_id is None:
        return [round_.client_id] if round_.client_id is not None else []
    return list(
        db.execute(
            select(RoundTemplateClient.client_id)
            .where(RoundTemplateClient.template_id == round_.template_id)
            .order_by(RoundTemplateClient.order_index)
        ).scalars().all()
    )


def build_scope(db: Session, round_: Round) -> RoundScope:
    """Reconstruit le périmètre depuis la base, sur les checkpoints actuellement actifs."""
    client_ids = scope_client_ids(db, round_)

    names: Dict[uuid.UUID, str] = {}
    by_client: Dict[uuid.UUID, set] = {cid: set() for cid in client_ids}

    if client_ids:
        for cid, name in db.execute(
            select(Client.id, Client.name).where(Client.id.in_(client_ids))
        ).all():
            names[cid] = name

        rows = db.execute(
            select(Checkpoint.id, Checkpoint.client_id)
            .where(
                Checkpoint.client_id.in_(client_ids),
                Checkpoint.active.is_(True),
            )
        ).all()
        for checkpoint_id, client_id in rows:
            by_client[client_id].add(checkpoint_id)

    return RoundScope(
        round_id=round_.id,
        client_ids=tuple(client_ids),
        client_names=names,
        checkpoints_by_client={cid: frozenset(ids) for cid, ids in by_client.items()},
    )


def get_scope(db: Session, round_: Round, use_cache: bool = True) -> RoundScope:
    if use_cache:
        cached = scope_cache.get(round_.id)
        if cached is not None:
            return cached
    scope = build_scope(db, round_)
    scope_cache.put(scope)
    return scope


def on_round_started(db: Session, round_: Round) -> RoundScope:
    """Événement "ronde démarrée" : amorce le suivi de progression."""
    scope = build_scope(db, round_)
    scope_cache.put(scope)
    logger.info(
        "Suivi de progression amorcé — ronde %s : %d client(s)",
        round_.id, len(scope.client_ids),
    )
    return scope


def visited_checkpoint_ids(db: Session, round_id: uuid.UUID) -> FrozenSet[uuid.UUID]:
    """Checkpoints distincts ayant au moins une visite sous cette ronde."""
    return frozenset(
        db.execute(
            select(CheckpointVisit.checkpoint_id)
            .where(CheckpointVisit.round_id == round_id)
            .distinct()
        ).scalars().all()
    )


def aggregate(scope: RoundScope, visited: FrozenSet[uuid.UUID]) -> RoundProgress:
    """
    Calcule la progression à partir d'un périmètre et des checkpoints visités.

    Un client sans checkpoint actif compte total=0 et est considéré complet.
    Les visites de checkpoints désormais retirés ne comptent plus.
    """
    clients: List[ClientProgress] = []
    total_sum = 0
    completed_sum = 0

    for client_id in scope.client_ids:
        in_scope = scope.checkpoints_by_client.get(client_id, frozenset())
        total = len(in_scope)
        completed = len(in_scope & visited)
        if completed > total:
            logger.warning(
                "Progression incohérente ronde %s client %s : %d/%d, valeur plafonnée",
                scope.round_id, client_id, completed, total,
            )
            completed = total

        clients.append(
            ClientProgress(
                client_id=client_id,
                client_name=scope.client_names.get(client_id, ""),
                total_checkpoints=total,
                completed_checkpoints=completed,
                is_complete=completed >= total,
            )
        )
        total_sum += total
        completed_sum += completed

    orphans = visited - frozenset().union(*scope.checkpoints_by_client.values())
    if orphans:
        logger.debug("Ronde %s : %d visite(s) hors périmètre actif ignorée(s)", scope.round_id, len(orphans))

    percent = round(completed_sum * 100 / total_sum) if total_sum > 0 else 100
    return RoundProgress(
        round_id=scope.round_id,
        clients=clients,
        total_checkpoints=total_sum,
        completed_checkpoints=completed_sum,
        percent=percent,
        is_complete=all(c.is_complete for c in clients),
    )


def compute_round_progress(db: Session, round_id: uuid.UUID, use_cache: bool = True) -> RoundProgress:
    """
    Progression par client et globale d'une ronde.

    use_cache=False force la relecture du périmètre (utilisé par la garde de clôture).
    """
    round_ = db.get(Round, round_id)
    if round_ is None:
        raise not_found("Ronde", round_id)
    return compute_progress_for(db, round_, use_cache=use_cache)


def compute_progress_for(db: Session, round_: Round, use_cache: bool = True) -> RoundProgress:
    scope = get_scope(db, round_, use_cache=use_cache)
    return aggregate(scope, visited_checkpoint_ids(db, round_.id))
