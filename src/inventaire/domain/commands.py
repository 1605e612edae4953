"""
Commands du domaine.

Une command est une intention : l'utilisateur demande une mutation
de l'inventaire. Contrairement à un event, elle peut être refusée
(quantité invalide, stock insuffisant...).

Les commands de création acceptent un identifiant optionnel ;
s'il est absent, le handler en génère un.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from inventaire.domain.model import (
    DonnéesPrêtOutil,
    DonnéesProduit,
    DonnéesTechnicien,
    PièceJointe,
)


class Command:
    """Classe de base pour toutes les commands."""
    pass


# --- Mouvements de stock ---


@dataclass(frozen=True)
class Réapprovisionner(Command):
    """Réception de stock (mouvement ENTREE)."""

    produit_id: str
    quantité: int
    commentaire: Optional[str] = None
    pièce_jointe: Optional[PièceJointe] = None
    numéro_facture: Optional[str] = None


@dataclass(frozen=True)
class Distribuer(Command):
    """Remise de stock à un technicien (mouvement SORTIE)."""

    produit_id: str
    technicien_id: Optional[str]
    quantité: int
    commentaire: Optional[str] = None


# --- Produits ---


@dataclass(frozen=True)
class CréerProduit(Command):
    données: DonnéesProduit
    id: Optional[str] = None


@dataclass(frozen=True)
class ModifierProduit(Command):
    id: str
    données: DonnéesProduit


@dataclass(frozen=True)
class SupprimerProduit(Command):
    id: str


# --- Techniciens ---


@dataclass(frozen=True)
class CréerTechnicien(Command):
    données: DonnéesTechnicien
    id: Optional[str] = None


@dataclass(frozen=True)
class ModifierTechnicien(Command):
    id: str
    données: DonnéesTechnicien


@dataclass(frozen=True)
class SupprimerTechnicien(Command):
    id: str


# --- Prêts d'outils ---


@dataclass(frozen=True)
class CréerPrêtOutil(Command):
    données: DonnéesPrêtOutil
    id: Optional[str] = None


@dataclass(frozen=True)
class ModifierPrêtOutil(Command):
    id: str
    données: DonnéesPrêtOutil


@dataclass(frozen=True)
class SupprimerPrêtOutil(Command):
    id: str


@dataclass(frozen=True)
class AffecterOutil(Command):
    prêt_id: str
    technicien_id: Optional[str]
    date_retour_prévue: Optional[date] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class RetournerOutil(Command):
    prêt_id: str
