"""
Génération des étiquettes QR à coller sur les checkpoints.

Le QR encode un JSON {"company", "checkpoint", "manualCode", "type": "checkpoint"} ;
le code à 9 chiffres y est repris tel quel pour que caméra et saisie manuelle
convergent vers la même valeur (voir code_validator.extract_code_from_payload).
"""

import io
import json
import uuid
import logging

import qrcode
from sqlalchemy.orm import Session

from app.errors import not_found
from app.models.checkpoint import Checkpoint
from app.models.client import Client

logger = logging.getLogger(__name__)


def build_label_payload(company: str, checkpoint_name: str, manual_code: str) -> str:
    return json.dumps(
        {
            "company": company,
            "checkpoint": checkpoint_name,
            "manualCode": manual_code,
            "type": "checkpoint",
        },
        ensure_ascii=False,
    )


def generate_qr_image(payload: str) -> bytes:
    """Génère une image PNG du QR code encodant le contenu donné."""
    qr = qrcode.QRCode(version=1, box_size=10, border=4)
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def checkpoint_label_png(db: Session, checkpoint_id: uuid.UUID) -> bytes:
    """Étiquette PNG d'un checkpoint actif, au nom de son client."""
    checkpoint = db.get(Checkpoint, checkpoint_id)
    if checkpoint is None or not checkpoint.active:
        raise not_found("Checkpoint", checkpoint_id)
    client = db.get(Client, checkpoint.client_id)
    company = client.name if client is not None else ""

    logger.info("Étiquette QR générée pour le checkpoint %s (%s)", checkpoint.id, checkpoint.manual_code)
    return generate_qr_image(build_label_payload(company, checkpoint.name, checkpoint.manual_code))
