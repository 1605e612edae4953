"""
Encodage des pièces jointes.

Une image téléversée (photo de bon de livraison, facture...) est
convertie en data URL base64. Le domaine conserve le couple
(nom, data_url) sans jamais l'interpréter.
"""

from __future__ import annotations

import base64

from inventaire.domain.model import PièceJointe

TAILLE_MAX = 5 * 1024 * 1024


class PièceJointeInvalide(Exception):
    pass


def encoder_pièce_jointe(nom: str, contenu: bytes, type_mime: str) -> PièceJointe:
    if not (type_mime or "").startswith("image/"):
        raise PièceJointeInvalide(f"Seules les images sont acceptées (reçu : {type_mime})")
    if not contenu:
        raise PièceJointeInvalide("Fichier vide")
    if len(contenu) > TAILLE_MAX:
        raise PièceJointeInvalide("Fichier trop volumineux (5 Mo maximum)")
    encodé = base64.b64encode(contenu).decode("ascii")
    return PièceJointe(nom=nom, data_url=f"data:{type_mime};base64,{encodé}")
