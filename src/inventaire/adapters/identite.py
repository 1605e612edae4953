"""
Adapter d'identité.

Résout un couple (email, mot de passe) en Utilisateur muni d'un rôle.
La liste des comptes est codée en dur ; seuls les empreintes des mots
de passe sont conservées en mémoire (werkzeug.security).
"""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass

from werkzeug.security import check_password_hash, generate_password_hash


class IdentifiantsInvalides(Exception):
    """Levée quand l'email est inconnu ou le mot de passe incorrect."""
    pass


class Rôle(str, enum.Enum):
    ADMIN = "ADMIN"
    LECTEUR = "LECTEUR"


@dataclass(frozen=True)
class Utilisateur:
    id: str
    nom: str
    email: str
    rôle: Rôle

    @property
    def est_admin(self) -> bool:
        return self.rôle == Rôle.ADMIN


COMPTES_PAR_DÉFAUT = [
    (Utilisateur("user-admin", "Administrateur", "admin@tmf.fr", Rôle.ADMIN), "admin"),
    (Utilisateur("user-lecteur", "Consultation", "lecteur@tmf.fr", Rôle.LECTEUR), "lecteur"),
]


def _normaliser(email: str) -> str:
    return email.strip().lower()


class AbstractIdentités(abc.ABC):
    @abc.abstractmethod
    def authentifier(self, email: str, mot_de_passe: str) -> Utilisateur:
        raise NotImplementedError


class IdentitésEnDur(AbstractIdentités):
    def __init__(self, comptes: list[tuple[Utilisateur, str]] | None = None):
        self._comptes = {
            _normaliser(utilisateur.email): (utilisateur, generate_password_hash(mot_de_passe))
            for utilisateur, mot_de_passe in (comptes or COMPTES_PAR_DÉFAUT)
        }

    def authentifier(self, email: str, mot_de_passe: str) -> Utilisateur:
        compte = self._comptes.get(_normaliser(email or ""))
        if compte is None:
            raise IdentifiantsInvalides("Identifiants invalides")
        utilisateur, empreinte = compte
        if not check_password_hash(empreinte, mot_de_passe or ""):
            raise IdentifiantsInvalides("Identifiants invalides")
        return utilisateur
