"""
Pattern Unit of Work.

Le Unit of Work rend chaque mutation atomique. À l'entrée du context
manager, il ouvre un repository de travail à partir de l'instantané
validé du Magasin ; commit() publie le dernier instantané ajouté,
et sans commit rien n'est publié :

    with uow:
        inventaire = uow.inventaires.get()
        uow.inventaires.add(inventaire.réapprovisionner(...))
        uow.commit()

Il collecte aussi les events portés par les instantanés ajoutés
pendant la transaction, pour le message bus.
"""

from __future__ import annotations

import abc
import threading

from inventaire.adapters import repository


class AbstractUnitOfWork(abc.ABC):
    """
    Interface abstraite du Unit of Work.

    Fournit un repository `inventaires` et gère commit/rollback.
    Le rollback est automatique à la sortie du context manager :
    après un commit, il n'a plus rien à annuler.
    """

    inventaires: repository.AbstractRepository

    def __enter__(self) -> AbstractUnitOfWork:
        return self

    def __exit__(self, *args: object) -> None:
        self.rollback()

    def commit(self) -> None:
        self._commit()

    def collect_new_events(self):
        """
        Vide et retourne les events des instantanés vus pendant la transaction.

        Les instantanés étant immuables, on consomme la liste `seen`
        plutôt que les events eux-mêmes.
        """
        while self.inventaires.seen:
            inventaire = self.inventaires.seen.pop(0)
            yield from inventaire.événements

    @abc.abstractmethod
    def _commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def rollback(self) -> None:
        raise NotImplementedError


class InMemoryUnitOfWork(AbstractUnitOfWork):
    """
    Implémentation en mémoire, copy-on-write.

    Le verrou du Magasin est tenu pendant tout le bloc `with` :
    une seule transaction à la fois lit puis remplace l'instantané.
    Le repository de travail est propre à chaque thread, pour qu'un
    même Unit of Work puisse servir des requêtes concurrentes.
    """

    def __init__(self, magasin: repository.Magasin | None = None):
        self.magasin = magasin or repository.Magasin()
        self._local = threading.local()

    @property
    def inventaires(self) -> repository.AbstractRepository:
        if getattr(self._local, "inventaires", None) is None:
            self._local.inventaires = repository.InMemoryRepository(self.magasin.instantané)
        return self._local.inventaires

    @inventaires.setter
    def inventaires(self, inventaires: repository.AbstractRepository) -> None:
        self._local.inventaires = inventaires

    def __enter__(self) -> InMemoryUnitOfWork:
        self.magasin.verrou.acquire()
        self.inventaires = repository.InMemoryRepository(self.magasin.instantané)
        return super().__enter__()

    def __exit__(self, *args: object) -> None:
        try:
            super().__exit__(*args)
        finally:
            self.magasin.verrou.release()

    def _commit(self) -> None:
        self.magasin.instantané = self.inventaires.get()

    def rollback(self) -> None:
        # Une transaction non validée repart de l'instantané publié, sans ses events.
        if self.inventaires.get() is not self.magasin.instantané:
            self.inventaires = repository.InMemoryRepository(self.magasin.instantané)
