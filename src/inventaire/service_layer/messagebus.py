"""
Message Bus.

Point central de dispatch des commands et des events :

1. un message entre dans le bus ;
2. le bus appelle son ou ses handlers (dépendances déjà injectées
   par le bootstrap) ;
3. les events émis pendant le traitement sont collectés auprès du
   Unit of Work et traités à leur tour, jusqu'à vider la file.

Une command a exactement un handler et son erreur remonte à
l'appelant. Un event a de 0 à N handlers ; l'échec de l'un est
journalisé sans bloquer les suivants.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Union

from inventaire.domain import commands, events
from inventaire.service_layer import unit_of_work

logger = logging.getLogger(__name__)

Message = Union[commands.Command, events.Event]


class MessageBus:
    def __init__(
        self,
        uow: unit_of_work.AbstractUnitOfWork,
        event_handlers: dict[type[events.Event], list[Callable]],
        command_handlers: dict[type[commands.Command], Callable],
    ):
        self.uow = uow
        self.event_handlers = event_handlers
        self.command_handlers = command_handlers

    def handle(self, message: Message) -> list[Any]:
        """
        Traite un message et tous les events qui en découlent.

        Retourne les résultats des command handlers, dans l'ordre.
        """
        # File locale : plusieurs threads partagent le même bus.
        queue: list[Message] = [message]
        résultats: list[Any] = []
        while queue:
            message = queue.pop(0)
            if isinstance(message, events.Event):
                self._handle_event(message, queue)
            elif isinstance(message, commands.Command):
                résultats.append(self._handle_command(message, queue))
            else:
                raise ValueError(f"Message de type inconnu : {type(message)}")
        return résultats

    def _handle_event(self, event: events.Event, queue: list[Message]) -> None:
        for handler in self.event_handlers.get(type(event), []):
            try:
                logger.debug("Traitement de l'event %s avec %s", event, handler)
                handler(event)
                queue.extend(self.uow.collect_new_events())
            except Exception:
                logger.exception("Erreur lors du traitement de l'event %s", event)

    def _handle_command(self, command: commands.Command, queue: list[Message]) -> Any:
        logger.debug("Traitement de la command %s", command)
        handler = self.command_handlers.get(type(command))
        if handler is None:
            raise ValueError(f"Aucun handler pour la command {type(command).__name__}")
        try:
            résultat = handler(command)
        except Exception:
            logger.info("Command %s refusée", type(command).__name__)
            raise
        queue.extend(self.uow.collect_new_events())
        return résultat
