"""
Validation des codes manuels de checkpoint (9 chiffres).

Vérifie la forme du code avant toute résolution : un code mal formé est rejeté
localement (MalformedCode) et n'atteint jamais la base, ce qui le distingue
d'un code bien formé mais inconnu (CheckpointNotFound).
"""

import json
import re
import secrets
from typing import Optional

from app.config import settings
from app.errors import MalformedCode

_NON_DIGITS = re.compile(r"\D")


def sanitize_manual_input(raw: Optional[str]) -> str:
    """Retire tout caractère non numérique ; la longueur est contrôlée ensuite par validate_manual_code."""
    if not raw:
        return ""
    return _NON_DIGITS.sub("", raw)


def is_well_formed(code: Optional[str]) -> bool:
    if not code or len(code) != settings.MANUAL_CODE_LENGTH:
        return False
    # str.isdigit() accepte les chiffres Unicode (exposants...) : on se limite à l'ASCII
    return code.isascii() and code.isdigit()


def validate_manual_code(code: Optional[str]) -> str:
    """Retourne le code s'il est exactement composé de 9 chiffres, sinon lève MalformedCode."""
    if not is_well_formed(code):
        raise MalformedCode(
            f"Le code doit comporter exactement {settings.MANUAL_CODE_LENGTH} chiffres.",
            expected_length=settings.MANUAL_CODE_LENGTH,
        )
    return code


def extract_code_from_payload(payload: Optional[str]) -> str:
    """
    Extrait le code d'un contenu QR décodé.

    Les étiquettes imprimées encodent un JSON {"type": "checkpoint", "manualCode": "..."} ;
    tout autre contenu est renvoyé tel quel (nettoyé des espaces) et sera validé ensuite.
    """
    cleaned = (payload or "").strip()
    if not cleaned.startswith("{"):
        return cleaned
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        return cleaned
    if isinstance(data, dict) and data.get("type") == "checkpoint" and data.get("manualCode"):
        return str(data["manualCode"]).strip()
    return cleaned


def generate_manual_code() -> str:
    """Tire un code aléatoire complété à gauche par des zéros."""
    length = settings.MANUAL_CODE_LENGTH
    return str(secrets.randbelow(10 ** length)).zfill(length)
