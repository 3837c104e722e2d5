"""
Tests de la machine à états d'acquisition caméra, avec une source de frames factice.
"""

import json
import threading
import time
import uuid

import pytest

from app.errors import DeviceUnavailable, IllegalTransition, ResourceNotFound, ScanFailureReason
from app.services.scan_session import ScanSession, ScanSessionManager, ScanState

LABEL = json.dumps({"company": "Entrepôt Nord", "checkpoint": "Portail", "manualCode": "100000001", "type": "checkpoint"})


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


class FakeSource:
    """Chaque frame est directement le contenu décodé (ou None pour une lecture ratée)."""

    def __init__(self, frames=(), error=None, open_delay=0.0, clock=None, torch=False):
        self.frames = list(frames)
        self.error = error
        self.open_delay = open_delay
        self.clock = clock
        self.torch = torch
        self.opened = False
        self.released = 0

    def open(self, timeout):
        if self.clock is not None:
            self.clock.now += self.open_delay
        if self.error is not None:
            raise DeviceUnavailable("Caméra indisponible.", reason=self.error)
        self.opened = True

    def read(self):
        if not self.frames:
            return "frame vide"
        return self.frames.pop(0)

    def set_torch(self, enabled):
        return self.torch

    def release(self):
        self.released += 1
        self.opened = False


def identity_decoder(frame):
    return None if frame == "frame vide" else frame


def make_session(*sources, clock=None):
    clock = clock or FakeClock()
    queue = list(sources)
    created = []

    def factory():
        source = queue.pop(0) if queue else FakeSource()
        created.append(source)
        return source

    session = ScanSession(
        "tablette-1", uuid.uuid4(), uuid.uuid4(), factory,
        decoder=identity_decoder, clock=clock, sleep=clock.sleep,
    )
    return session, created


# ----------------------------------------------------------------
# Acquisition
# ----------------------------------------------------------------

def test_acquisition_reussie():
    session, created = make_session(FakeSource())
    assert session.acquire() == ScanState.READY
    assert created[0].opened
    assert session.failure_count == 0


@pytest.mark.parametrize("reason", list(ScanFailureReason))
def test_acquisition_echec_type(reason):
    session, created = make_session(FakeSource(error=reason))
    assert session.acquire() == ScanState.ERROR
    assert session.failure_reason == reason.value
    assert created[0].released == 1


def test_ouverture_trop_lente_timeout():
    clock = FakeClock()
    session, created = make_session(FakeSource(open_delay=9.0, clock=clock), clock=clock)
    assert session.acquire() == ScanState.ERROR
    assert session.failure_reason == "timeout"
    assert created[0].released == 1


def test_bascule_auto_en_manuel_apres_echecs_repetes():
    denied = ScanFailureReason.PERMISSION_DENIED
    session, _ = make_session(FakeSource(error=denied), FakeSource(error=denied), FakeSource(error=denied))

    assert session.acquire() == ScanState.ERROR
    assert session.retry() == ScanState.ERROR
    assert session.retry() == ScanState.MANUAL
    assert session.failure_count == 3


def test_acquire_hors_etat_acquiring():
    session, _ = make_session(FakeSource())
    session.acquire()
    with pytest.raises(IllegalTransition):
        session.acquire()


# ----------------------------------------------------------------
# Scan
# ----------------------------------------------------------------

def test_scan_premier_code_valide_arrete_l_acquisition():
    session, created = make_session(FakeSource(frames=[None, "bruit", LABEL, "200000001"]))
    session.acquire()

    assert session.scan() == "100000001"
    assert session.state == ScanState.CLOSED
    assert session.result_code == "100000001"
    assert created[0].released == 1


def test_scan_code_brut_accepte():
    session, _ = make_session(FakeSource(frames=["100000001"]))
    session.acquire()
    assert session.scan() == "100000001"


def test_scan_qr_etranger_ignore():
    other = json.dumps({"type": "vehicle", "manualCode": "123456789"})
    session, _ = make_session(FakeSource(frames=[other, "https://exemple.fr", "12345"]))
    session.acquire()

    assert session.scan(max_duration=1.0) is None
    assert session.state == ScanState.READY


def test_scan_delai_depasse_reste_pret():
    clock = FakeClock()
    session, created = make_session(FakeSource(), clock=clock)
    session.acquire()

    assert session.scan(max_duration=2.0) is None
    assert session.state == ScanState.READY
    assert clock.now >= 2.0
    assert created[0].released == 0


def test_scan_flux_interrompu_passe_en_erreur():
    session, created = make_session(FakeSource(frames=[None] * 10))
    session.acquire()

    assert session.scan() is None
    assert session.state == ScanState.ERROR
    assert session.failure_reason == "device_busy"
    assert created[0].released == 1


def test_scan_hors_etat_pret():
    session, _ = make_session(FakeSource(error=ScanFailureReason.NO_DEVICE))
    session.acquire()
    with pytest.raises(IllegalTransition):
        session.scan()


# ----------------------------------------------------------------
# Saisie manuelle et reprise
# ----------------------------------------------------------------

def test_permission_refusee_puis_saisie_manuelle_meme_code():
    """Caméra refusée → saisie manuelle : le code obtenu est celui que la caméra aurait lu."""
    session, _ = make_session(FakeSource(error=ScanFailureReason.PERMISSION_DENIED))
    assert session.acquire() == ScanState.ERROR

    session.switch_to_manual()
    assert session.state == ScanState.MANUAL
    assert session.submit_manual("100-000-001") == "100000001"

    camera, _ = make_session(FakeSource(frames=[LABEL]))
    camera.acquire()
    assert camera.scan() == "100000001"


def test_saisie_manuelle_trop_longue_non_tronquee():
    session, _ = make_session(FakeSource(error=ScanFailureReason.NO_DEVICE))
    session.acquire()
    session.switch_to_manual()
    assert session.submit_manual("1000000019") == "1000000019"


def test_bascule_manuelle_libere_la_camera():
    session, created = make_session(FakeSource())
    session.acquire()
    session.switch_to_manual()
    assert created[0].released == 1
    assert session.switch_to_manual() == ScanState.MANUAL


class EndlessSource(FakeSource):
    """Flux sans QR ; signale la première lecture."""

    def __init__(self):
        super().__init__()
        self.reading = threading.Event()

    def read(self):
        self.reading.set()
        return "frame vide"


def test_bascule_manuelle_interrompt_une_capture_en_cours():
    source = EndlessSource()
    session = ScanSession(
        "tablette-1", uuid.uuid4(), uuid.uuid4(), lambda: source, decoder=identity_decoder,
    )
    session.acquire()
    results = []
    worker = threading.Thread(target=lambda: results.append(session.scan(max_duration=10)))
    worker.start()
    assert source.reading.wait(timeout=2)

    started = time.monotonic()
    assert session.switch_to_manual() == ScanState.MANUAL
    elapsed = time.monotonic() - started
    worker.join(timeout=2)

    assert elapsed < 1
    assert not worker.is_alive()
    assert results == [None]
    assert source.released == 1


def test_retry_apres_bascule_manuelle_permet_de_scanner():
    session, _ = make_session(FakeSource(), FakeSource(frames=[LABEL]))
    session.acquire()
    session.switch_to_manual()
    session.retry()
    assert session.scan() == "100000001"


def test_saisie_manuelle_hors_mode_manuel():
    session, _ = make_session(FakeSource())
    session.acquire()
    with pytest.raises(IllegalTransition):
        session.submit_manual("100000001")


def test_retry_depuis_le_mode_manuel():
    session, _ = make_session(FakeSource(error=ScanFailureReason.DEVICE_BUSY), FakeSource())
    session.acquire()
    session.switch_to_manual()
    assert session.retry() == ScanState.READY


def test_retry_depuis_ready_refuse():
    session, _ = make_session(FakeSource())
    session.acquire()
    with pytest.raises(IllegalTransition):
        session.retry()


def test_torche():
    session, _ = make_session(FakeSource(torch=True))
    assert session.set_torch(True) is False
    session.acquire()
    assert session.set_torch(True) is True


# ----------------------------------------------------------------
# Fermeture
# ----------------------------------------------------------------

def test_close_libere_la_camera_et_est_idempotent():
    session, created = make_session(FakeSource())
    session.acquire()
    session.close()
    session.close()
    assert session.state == ScanState.CLOSED
    assert created[0].released == 1


def test_context_manager_ferme_la_session():
    session, created = make_session(FakeSource())
    with session:
        session.acquire()
    assert session.state == ScanState.CLOSED
    assert created[0].released == 1


def test_session_fermee_ne_redemarre_pas():
    session, _ = make_session(FakeSource())
    session.close()
    with pytest.raises(IllegalTransition):
        session.retry()


# ----------------------------------------------------------------
# ScanSessionManager
# ----------------------------------------------------------------

def test_manager_une_session_par_appareil():
    manager = ScanSessionManager()
    first_source, second_source = FakeSource(), FakeSource()
    first = manager.open("tablette-1", uuid.uuid4(), uuid.uuid4(), lambda: first_source, decoder=identity_decoder)
    first.acquire()

    second = manager.open("tablette-1", uuid.uuid4(), uuid.uuid4(), lambda: second_source, decoder=identity_decoder)

    assert first.state == ScanState.CLOSED
    assert first_source.released == 1
    assert manager.get("tablette-1") is second
    assert len(manager) == 1


def test_manager_session_inconnue():
    manager = ScanSessionManager()
    with pytest.raises(ResourceNotFound):
        manager.get("inconnue")
    assert manager.close("inconnue") is False


def test_manager_close_idle():
    clock = FakeClock()
    manager = ScanSessionManager()
    idle = manager.open("tablette-1", uuid.uuid4(), uuid.uuid4(), FakeSource, clock=clock, sleep=clock.sleep)
    idle.acquire()
    clock.now += 700
    busy = manager.open("tablette-2", uuid.uuid4(), uuid.uuid4(), FakeSource, clock=clock, sleep=clock.sleep)
    busy.acquire()

    assert manager.close_idle(600) == 1
    assert idle.state == ScanState.CLOSED
    assert manager.get("tablette-2") is busy


def test_manager_close_all():
    manager = ScanSessionManager()
    session = manager.open("tablette-1", uuid.uuid4(), uuid.uuid4(), FakeSource)
    manager.close_all()
    assert session.state == ScanState.CLOSED
    assert len(manager) == 0
