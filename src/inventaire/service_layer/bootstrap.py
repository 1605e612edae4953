"""
Bootstrap : assemblage de l'application (Composition Root).

Construit le message bus avec toutes ses dépendances. C'est le seul
endroit qui connaît les implémentations concrètes ; les tests y
injectent leurs fakes (notifications, horloge, magasin pré-rempli).

L'injection se fait ici, une fois pour toutes : chaque handler est
enveloppé dans une fonction qui ne prend plus que le message, ses
autres paramètres étant résolus par nom dans les dépendances.
"""

from __future__ import annotations

import inspect
from datetime import datetime
from typing import Any, Callable

from inventaire.adapters import notifications
from inventaire.domain import commands, events
from inventaire.service_layer import handlers, messagebus, unit_of_work


def bootstrap(
    uow: unit_of_work.AbstractUnitOfWork | None = None,
    notifications_adapter: notifications.AbstractNotifications | None = None,
    horloge: Callable[[], datetime] = datetime.now,
    **extra_dependencies: Any,
) -> messagebus.MessageBus:
    """
    Construit et retourne un MessageBus configuré.

    Sans argument, l'inventaire part vide en mémoire et les alertes
    partent par SMTP.
    """
    if uow is None:
        uow = unit_of_work.InMemoryUnitOfWork()

    if notifications_adapter is None:
        notifications_adapter = notifications.EmailNotifications()

    dependencies: dict[str, Any] = {
        "uow": uow,
        "notifications": notifications_adapter,
        "horloge": horloge,
        **extra_dependencies,
    }

    injected_event_handlers = {
        event_type: [inject_dependencies(handler, dependencies) for handler in handlers_]
        for event_type, handlers_ in EVENT_HANDLERS.items()
    }
    injected_command_handlers = {
        command_type: inject_dependencies(handler, dependencies)
        for command_type, handler in COMMAND_HANDLERS.items()
    }

    return messagebus.MessageBus(
        uow=uow,
        event_handlers=injected_event_handlers,
        command_handlers=injected_command_handlers,
    )


def inject_dependencies(handler: Callable, dependencies: dict[str, Any]) -> Callable:
    """
    Lie à l'avance les paramètres du handler présents dans `dependencies`.

    Le premier paramètre (le message) reste libre.
    """
    params = list(inspect.signature(handler).parameters)[1:]
    deps = {name: dependencies[name] for name in params if name in dependencies}

    def injected(message):
        return handler(message, **deps)

    injected.__name__ = handler.__name__
    return injected


# --- Routage des messages vers les handlers ---

EVENT_HANDLERS: dict[type[events.Event], list] = {
    events.StockBas: [
        handlers.journaliser_alerte,
        handlers.envoyer_alerte_stock_bas,
    ],
    events.RuptureDeStock: [
        handlers.journaliser_alerte,
        handlers.envoyer_alerte_rupture,
    ],
    events.OutilAffecté: [handlers.journaliser_prêt],
    events.OutilRetourné: [handlers.journaliser_prêt],
    events.ProduitSupprimé: [handlers.journaliser_suppression],
    events.TechnicienSupprimé: [handlers.journaliser_suppression],
}

COMMAND_HANDLERS: dict[type[commands.Command], Any] = {
    commands.Réapprovisionner: handlers.réapprovisionner,
    commands.Distribuer: handlers.distribuer,
    commands.CréerProduit: handlers.créer_produit,
    commands.ModifierProduit: handlers.modifier_produit,
    commands.SupprimerProduit: handlers.supprimer_produit,
    commands.CréerTechnicien: handlers.créer_technicien,
    commands.ModifierTechnicien: handlers.modifier_technicien,
    commands.SupprimerTechnicien: handlers.supprimer_technicien,
    commands.CréerPrêtOutil: handlers.créer_prêt_outil,
    commands.ModifierPrêtOutil: handlers.modifier_prêt_outil,
    commands.SupprimerPrêtOutil: handlers.supprimer_prêt_outil,
    commands.AffecterOutil: handlers.affecter_outil,
    commands.RetournerOutil: handlers.retourner_outil,
}
