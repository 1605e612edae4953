"""
Pattern Repository, version en mémoire.

L'état vit uniquement en mémoire, le temps du processus. Deux objets
se partagent le travail :

- le Magasin conserve le dernier Inventaire validé (commit) ;
- le repository est l'espace de travail d'une transaction : il part
  de l'instantané du Magasin et reçoit les nouveaux instantanés
  produits par les transitions du domaine.

Les noms de méthodes du pattern (add, get) restent en anglais
car ce sont des conventions reconnues.
"""

from __future__ import annotations

import abc
import threading

from inventaire.domain import model


class Magasin:
    """
    Détenteur de l'instantané validé, partagé par toutes les transactions.

    Le verrou garantit un seul écrivain à la fois quand plusieurs
    threads (requêtes Flask) utilisent le même magasin.
    """

    def __init__(self, inventaire: model.Inventaire | None = None):
        self.instantané = (inventaire or model.Inventaire()).sans_événements()
        self.verrou = threading.RLock()


class AbstractRepository(abc.ABC):
    """
    Interface abstraite du repository.

    Pattern Template Method : add() trace l'instantané dans `seen`
    (pour que le Unit of Work puisse collecter ses events), puis délègue
    à _add(), qui ne stocke que la version débarrassée de ses events.
    """

    seen: list[model.Inventaire]

    def __init__(self) -> None:
        self.seen: list[model.Inventaire] = []

    def add(self, inventaire: model.Inventaire) -> None:
        """Remplace l'instantané courant par un nouvel instantané."""
        self._add(inventaire.sans_événements())
        self.seen.append(inventaire)

    def get(self) -> model.Inventaire:
        return self._get()

    @abc.abstractmethod
    def _add(self, inventaire: model.Inventaire) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def _get(self) -> model.Inventaire:
        raise NotImplementedError


class InMemoryRepository(AbstractRepository):
    """Espace de travail d'une transaction, initialisé depuis un instantané."""

    def __init__(self, inventaire: model.Inventaire):
        super().__init__()
        self._inventaire = inventaire

    def _add(self, inventaire: model.Inventaire) -> None:
        self._inventaire = inventaire

    def _get(self) -> model.Inventaire:
        return self._inventaire
