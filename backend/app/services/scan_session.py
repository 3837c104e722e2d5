"""
Acquisition d'un code par caméra, avec repli en saisie manuelle.

Machine à états explicite (remplace les booléens loading/error/permission/manual) :

    acquiring ──▶ ready ──(décodage)──▶ closed
        │           │
        ▼           ▼
      error ◀───────┘
        │ ▲
        ▼ │ retry
      manual ──▶ closed

- acquiring → ready : caméra ouverte dans le délai SCAN_ACQUIRE_TIMEOUT_SECONDS
- acquiring/ready → error : échec typé (DeviceUnavailable.reason)
- error → manual automatiquement après SCAN_MAX_FAILURES échecs consécutifs
- tout état → closed : libère la caméra immédiatement

Une session est "one-shot" : le premier code bien formé arrête l'acquisition.
La session ne connaît aucune donnée métier ; l'appelant transmet le code
obtenu au pipeline de validation/résolution (visit_service.record_visit).
"""

import logging
import threading
import time
import uuid
from enum import Enum
from typing import Any, Callable, Dict, Optional

from app.config import settings
from app.errors import DeviceUnavailable, IllegalTransition, ScanFailureReason, not_found
from app.services.code_validator import extract_code_from_payload, is_well_formed, sanitize_manual_input

logger = logging.getLogger(__name__)


class ScanState(str, Enum):
    ACQUIRING = "acquiring"
    READY = "ready"
    ERROR = "error"
    MANUAL = "manual"
    CLOSED = "closed"


SCAN_TRANSITIONS = {
    ScanState.ACQUIRING: {ScanState.READY, ScanState.ERROR, ScanState.MANUAL, ScanState.CLOSED},
    ScanState.READY: {ScanState.ERROR, ScanState.MANUAL, ScanState.CLOSED},
    ScanState.ERROR: {ScanState.MANUAL, ScanState.ACQUIRING, ScanState.CLOSED},
    ScanState.MANUAL: {ScanState.ACQUIRING, ScanState.CLOSED},
    ScanState.CLOSED: set(),
}


def default_source_factory(camera_index: int = 0) -> Callable[[], Any]:
    def factory():
        # Import local : OpenCV n'est chargé qu'à la première ouverture de caméra
        from app.services.camera import OpenCvFrameSource

        return OpenCvFrameSource(camera_index)

    return factory


def default_decoder(frame: Any) -> Optional[str]:
    from app.services.camera import decode_qr

    return decode_qr(frame)


class ScanSession:
    """Session de scan exclusive sur un appareil, liée à une ronde et un opérateur."""

    def __init__(
        self,
        device_id: str,
        round_id: uuid.UUID,
        operator_id: uuid.UUID,
        source_factory: Callable[[], Any],
        decoder: Callable[[Any], Optional[str]] = default_decoder,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.device_id = device_id
        self.round_id = round_id
        self.operator_id = operator_id
        self.state = ScanState.ACQUIRING
        self.failure_count = 0
        self.last_error: Optional[DeviceUnavailable] = None
        self.result_code: Optional[str] = None

        self._source_factory = source_factory
        self._decoder = decoder
        self._clock = clock
        self._sleep = sleep
        self._source: Optional[Any] = None
        self._lock = threading.RLock()
        self._cancelled = threading.Event()
        self._interrupted = threading.Event()
        self.last_activity = clock()

    # --- Transitions ---

    def acquire(self) -> ScanState:
        """Ouvre la caméra dans le délai imparti ; ready en cas de succès, error sinon."""
        with self._lock:
            self._touch()
            if self.state != ScanState.ACQUIRING:
                raise self._illegal("acquérir la caméra")

            timeout = settings.SCAN_ACQUIRE_TIMEOUT_SECONDS
            source = self._source_factory()
            started = self._clock()
            try:
                source.open(timeout)
            except DeviceUnavailable as exc:
                source.release()
                return self._fail(exc)

            if self._clock() - started > timeout:
                source.release()
                return self._fail(
                    DeviceUnavailable("Délai d'ouverture de la caméra dépassé.", reason=ScanFailureReason.TIMEOUT)
                )

            self._source = source
            self._interrupted.clear()
            self.failure_count = 0
            self.last_error = None
            self._set_state(ScanState.READY)
            return self.state

    def scan(self, max_duration: Optional[float] = None) -> Optional[str]:
        """
        Échantillonne les frames jusqu'au premier code bien formé.

        Retourne le code (session fermée, caméra libérée), ou None si le délai
        expire ou si la capture est interrompue par switch_to_manual/close (session
        toujours ready), ou si la caméra décroche (session en error).
        Les QR codes dont le contenu n'a pas la forme d'un code checkpoint sont ignorés.
        """
        with self._lock:
            if self.state != ScanState.READY:
                raise self._illegal("scanner")

            interval = settings.SCAN_FRAME_INTERVAL_MS / 1000
            deadline = self._clock() + (max_duration or settings.SCAN_CAPTURE_MAX_SECONDS)
            read_failures = 0

            while self._clock() < deadline and not self._stop_requested():
                frame = self._source.read()
                if frame is None:
                    read_failures += 1
                    if read_failures >= settings.SCAN_MAX_READ_FAILURES:
                        self._release_device()
                        self._fail(
                            DeviceUnavailable("Le flux caméra a été interrompu.", reason=ScanFailureReason.DEVICE_BUSY)
                        )
                        return None
                else:
                    read_failures = 0
                    payload = self._decoder(frame)
                    if payload:
                        code = extract_code_from_payload(payload)
                        if is_well_formed(code):
                            self.result_code = code
                            self._release_device()
                            self._set_state(ScanState.CLOSED)
                            logger.info("Code décodé par caméra — appareil %s, ronde %s", self.device_id, self.round_id)
                            return code
                        logger.debug("QR ignoré (forme inattendue) sur l'appareil %s", self.device_id)
                self._sleep(interval)

            self._touch()
            return None

    def switch_to_manual(self) -> ScanState:
        """Bascule en saisie manuelle (à l'initiative de l'utilisateur) ; libère la caméra."""
        # Interrompt une capture en cours, qui détient le verrou
        self._interrupted.set()
        with self._lock:
            self._touch()
            if self.state == ScanState.MANUAL:
                return self.state
            self._release_device()
            self._set_state(ScanState.MANUAL)
            return self.state

    def submit_manual(self, raw: str) -> str:
        """Nettoie la saisie clavier ; la validation de forme est faite par le pipeline commun."""
        with self._lock:
            self._touch()
            if self.state != ScanState.MANUAL:
                raise self._illegal("saisir un code manuel")
            return sanitize_manual_input(raw)

    def retry(self) -> ScanState:
        """manual/error → acquiring, puis nouvelle tentative d'ouverture."""
        with self._lock:
            self._touch()
            if self.state not in (ScanState.MANUAL, ScanState.ERROR):
                raise self._illegal("relancer la caméra")
            self._set_state(ScanState.ACQUIRING)
            return self.acquire()

    def close(self) -> None:
        """Ferme la session depuis n'importe quel état ; la caméra est libérée avant retour."""
        self._cancelled.set()
        with self._lock:
            if self.state == ScanState.CLOSED:
                return
            self._release_device()
            self._set_state(ScanState.CLOSED)

    def set_torch(self, enabled: bool) -> bool:
        with self._lock:
            if self.state != ScanState.READY or self._source is None:
                return False
            return self._source.set_torch(enabled)

    # --- Utilitaires ---

    @property
    def failure_reason(self) -> Optional[str]:
        return self.last_error.reason.value if self.last_error else None

    def is_idle(self, max_idle_seconds: float) -> bool:
        return self._clock() - self.last_activity > max_idle_seconds

    def status(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "round_id": self.round_id,
            "state": self.state.value,
            "failure_reason": self.failure_reason,
            "failure_count": self.failure_count,
        }

    def __enter__(self) -> "ScanSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _fail(self, exc: DeviceUnavailable) -> ScanState:
        self.failure_count += 1
        self.last_error = exc
        self._set_state(ScanState.ERROR)
        logger.warning(
            "Caméra indisponible sur l'appareil %s (%s, échec %d) : %s",
            self.device_id, exc.reason.value, self.failure_count, exc.message,
        )
        if self.failure_count >= settings.SCAN_MAX_FAILURES:
            logger.warning("Bascule automatique en saisie manuelle — appareil %s", self.device_id)
            self._set_state(ScanState.MANUAL)
        return self.state

    def _stop_requested(self) -> bool:
        return self._cancelled.is_set() or self._interrupted.is_set()

    def _release_device(self) -> None:
        if self._source is not None:
            self._source.release()
            self._source = None

    def _set_state(self, target: ScanState) -> None:
        if target not in SCAN_TRANSITIONS[self.state]:
            raise IllegalTransition(
                f"Session de scan : transition {self.state.value} → {target.value} non autorisée.",
                status=self.state.value,
                target=target.value,
            )
        logger.debug("Session %s : %s → %s", self.device_id, self.state.value, target.value)
        self.state = target

    def _illegal(self, action: str) -> IllegalTransition:
        return IllegalTransition(
            f"Impossible de {action} dans l'état {self.state.value}.",
            status=self.state.value,
        )

    def _touch(self) -> None:
        self.last_activity = self._clock()


class ScanSessionManager:
    """
    Registre des sessions ouvertes, une par appareil.
    Ouvrir une session sur un appareil ferme d'abord la précédente (caméra exclusive).
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, ScanSession] = {}
        self._lock = threading.Lock()

    def open(
        self,
        device_id: str,
        round_id: uuid.UUID,
        operator_id: uuid.UUID,
        source_factory: Callable[[], Any],
        **kwargs: Any,
    ) -> ScanSession:
        with self._lock:
            previous = self._sessions.pop(device_id, None)
            if previous is not None:
                logger.info("Session de scan précédente fermée sur l'appareil %s", device_id)
                previous.close()
            session = ScanSession(device_id, round_id, operator_id, source_factory, **kwargs)
            self._sessions[device_id] = session
            return session

    def get(self, device_id: str) -> ScanSession:
        with self._lock:
            session = self._sessions.get(device_id)
        if session is None:
            raise not_found("Session de scan", device_id)
        return session

    def close(self, device_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(device_id, None)
        if session is None:
            return False
        session.close()
        return True

    def close_idle(self, max_idle_seconds: float) -> int:
        """Ferme les sessions inactives ou déjà terminées ; retourne le nombre de sessions fermées."""
        with self._lock:
            stale = [
                device_id for device_id, s in self._sessions.items()
                if s.state == ScanState.CLOSED or s.is_idle(max_idle_seconds)
            ]
            sessions = [self._sessions.pop(device_id) for device_id in stale]
        for session in sessions:
            session.close()
        return len(sessions)

    def close_all(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


scan_sessions = ScanSessionManager()
