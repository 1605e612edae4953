"""
Events du domaine.

Un event est un fait déjà survenu dans l'inventaire : il est immuable
et nommé au passé. Les transitions de l'Inventaire les accumulent,
le message bus les distribue ensuite aux handlers concernés.
"""

from dataclasses import dataclass


class Event:
    """Classe de base pour tous les events du domaine."""
    pass


@dataclass(frozen=True)
class StockBas(Event):
    """Une sortie a fait passer le produit sous son seuil d'alerte."""

    produit_id: str
    nom: str
    disponible: int
    seuil: int
    message: str


@dataclass(frozen=True)
class RuptureDeStock(Event):
    """Une sortie a épuisé le stock disponible du produit."""

    produit_id: str
    nom: str
    disponible: int
    seuil: int
    message: str


@dataclass(frozen=True)
class OutilAffecté(Event):
    prêt_id: str
    nom_outil: str
    technicien_id: str


@dataclass(frozen=True)
class OutilRetourné(Event):
    prêt_id: str
    nom_outil: str


@dataclass(frozen=True)
class ProduitSupprimé(Event):
    """Un produit a été supprimé avec tous ses mouvements."""

    produit_id: str
    mouvements_supprimés: int


@dataclass(frozen=True)
class TechnicienSupprimé(Event):
    """Un technicien a été supprimé ; ses mouvements sont conservés sans référence."""

    technicien_id: str
    mouvements_détachés: int
