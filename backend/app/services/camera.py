"""
Accès à la caméra via OpenCV : source de frames et décodage QR.

Le reste du code ne connaît que le contrat FrameSource :
open(timeout) / read() / set_torch(on) / release().
Toute défaillance à l'ouverture est traduite en DeviceUnavailable typé.
"""

import logging
import time
from typing import Any, Optional

import cv2
import numpy as np

from app.errors import DeviceUnavailable, ScanFailureReason

logger = logging.getLogger(__name__)


class FrameSource:
    """Contrat minimal d'une source vidéo exclusive."""

    def open(self, timeout: float) -> None:
        raise NotImplementedError

    def read(self) -> Optional[Any]:
        """Retourne une frame, ou None si la lecture a échoué."""
        raise NotImplementedError

    def set_torch(self, enabled: bool) -> bool:
        """Active/désactive le flash ; retourne False si non supporté."""
        return False

    def release(self) -> None:
        raise NotImplementedError


class OpenCvFrameSource(FrameSource):
    """Caméra locale (index V4L2/DirectShow) ou flux vidéo lu par cv2.VideoCapture."""

    def __init__(self, source: Any = 0, poll_interval: float = 0.1) -> None:
        self.source = source
        self.poll_interval = poll_interval
        self._cap: Optional[Any] = None

    def open(self, timeout: float) -> None:
        deadline = time.monotonic() + timeout
        try:
            cap = cv2.VideoCapture(self.source)
        except cv2.error as exc:
            raise DeviceUnavailable(
                f"Caméra non supportée : {exc}", reason=ScanFailureReason.UNSUPPORTED
            ) from exc
        except PermissionError as exc:
            raise DeviceUnavailable(
                "Accès à la caméra refusé.", reason=ScanFailureReason.PERMISSION_DENIED
            ) from exc

        if not cap.isOpened():
            cap.release()
            raise DeviceUnavailable("Aucune caméra détectée.", reason=ScanFailureReason.NO_DEVICE)

        # Le device peut être ouvert mais occupé ou lent à livrer sa première frame
        while time.monotonic() < deadline:
            ok, _frame = cap.read()
            if ok:
                self._cap = cap
                logger.debug("Caméra %s prête", self.source)
                return
            time.sleep(self.poll_interval)

        cap.release()
        raise DeviceUnavailable(
            f"La caméra n'a livré aucune image en {timeout:.0f} s.", reason=ScanFailureReason.TIMEOUT
        )

    def read(self) -> Optional[Any]:
        if self._cap is None:
            return None
        ok, frame = self._cap.read()
        return frame if ok else None

    def set_torch(self, enabled: bool) -> bool:
        # Pas de propriété "torch" standard : certains pilotes V4L2 exposent le flash via CAP_PROP_BACKLIGHT
        if self._cap is None:
            return False
        return bool(self._cap.set(cv2.CAP_PROP_BACKLIGHT, 1 if enabled else 0))

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None


_detector: Optional[Any] = None


def decode_qr(frame: Any) -> Optional[str]:
    """Décode le premier QR code visible dans la frame, ou None."""
    global _detector
    if frame is None:
        return None
    if _detector is None:
        _detector = cv2.QRCodeDetector()
    image = np.asarray(frame)
    if image.size == 0:
        return None
    try:
        data, _points, _straight = _detector.detectAndDecode(image)
    except cv2.error as exc:
        logger.debug("Décodage QR impossible sur cette frame : %s", exc)
        return None
    return data or None
