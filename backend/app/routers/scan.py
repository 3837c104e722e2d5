"""
Router pour les sessions de scan caméra d'un appareil.

Une session suit le cycle acquiring → ready → closed, avec repli sur la saisie
manuelle. Le code obtenu (caméra ou clavier) passe par le même enregistrement
de visite que POST /rounds/{id}/visits.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.scan import ManualCodeEntry, ScanCaptureResult, ScanSessionOpen, ScanSessionStatus
from app.schemas.visit import VisitCreate
from app.services import round_service, visit_service
from app.services.scan_session import ScanSession, default_source_factory, scan_sessions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/scan-sessions", tags=["Scan"])


@router.post("", response_model=ScanSessionStatus, status_code=201, summary="Ouvrir une session de scan")
def open_session(data: ScanSessionOpen, db: Session = Depends(get_db)):
    """
    Ouvre la caméra de l'appareil (une seule session par appareil).
    En cas d'échec, la session passe en error avec sa cause
    (permission_denied, no_device, device_busy, unsupported, timeout).
    """
    round_service.get_round(db, data.round_id)
    session = scan_sessions.open(
        data.device_id,
        data.round_id,
        data.operator_id,
        default_source_factory(data.camera_index),
    )
    session.acquire()
    return session.status()


@router.get("/{device_id}", response_model=ScanSessionStatus, summary="État d'une session de scan")
def get_session(device_id: str):
    return scan_sessions.get(device_id).status()


@router.post("/{device_id}/capture", response_model=ScanCaptureResult, summary="Capturer un code par caméra")
def capture(device_id: str, db: Session = Depends(get_db)):
    """
    Lit le flux jusqu'au premier QR checkpoint valide ou jusqu'au délai de capture.
    Le code décodé est enregistré comme visite (scan_method QR_CAMERA).
    """
    session = scan_sessions.get(device_id)
    code = session.scan()
    if code is None:
        return ScanCaptureResult(session=session.status())
    return _record(db, session, code, "QR_CAMERA")


@router.post("/{device_id}/manual", response_model=ScanSessionStatus, summary="Passer en saisie manuelle")
def switch_to_manual(device_id: str):
    session = scan_sessions.get(device_id)
    session.switch_to_manual()
    return session.status()


@router.post("/{device_id}/manual-code", response_model=ScanCaptureResult, summary="Saisir un code manuellement")
def submit_manual_code(device_id: str, data: ManualCodeEntry, db: Session = Depends(get_db)):
    """
    La saisie est nettoyée (chiffres uniquement) puis validée et résolue
    exactement comme un code décodé par la caméra. En cas d'erreur, la session
    reste en saisie manuelle.
    """
    session = scan_sessions.get(device_id)
    code = session.submit_manual(data.code)
    return _record(db, session, code, "MANUAL")


@router.post("/{device_id}/retry", response_model=ScanSessionStatus, summary="Relancer la caméra")
def retry(device_id: str):
    session = scan_sessions.get(device_id)
    session.retry()
    return session.status()


@router.post("/{device_id}/torch", response_model=ScanSessionStatus, summary="Allumer ou éteindre la torche")
def set_torch(device_id: str, enabled: bool = True):
    session = scan_sessions.get(device_id)
    if not session.set_torch(enabled):
        logger.info("Torche non supportée sur l'appareil %s", device_id)
    return session.status()


@router.delete("/{device_id}", status_code=204, summary="Fermer une session de scan")
def close_session(device_id: str):
    """Libère la caméra immédiatement. Sans effet si la session n'existe plus."""
    scan_sessions.close(device_id)


def _record(db: Session, session: ScanSession, code: str, scan_method: str) -> ScanCaptureResult:
    result = visit_service.record_visit(
        db,
        session.round_id,
        VisitCreate(operator_id=session.operator_id, code=code, scan_method=scan_method),
    )
    scan_sessions.close(session.device_id)
    return ScanCaptureResult(session=session.status(), result=result)
