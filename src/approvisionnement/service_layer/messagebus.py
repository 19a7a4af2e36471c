"""
Message Bus.

Point de dispatch unique : l'API y dépose une command, le bus appelle
son handler puis traite en cascade les events émis par les commandes
touchées pendant la transaction.

Un bus sert une seule requête à la fois : la file de messages est locale
à handle(), et le Unit of Work porte la session de la requête (voir
bootstrap.fabrique_bus).

Les handlers reçus sont déjà liés à leurs dépendances (voir bootstrap) :
le bus ne fait que les appeler avec le message.

- Une command a exactement UN handler ; son erreur remonte à l'appelant
  après annulation de la transaction par le Unit of Work.
- Un event a 0 à N handlers (journal, notifications) ; leurs erreurs
  sont journalisées et n'annulent pas la command qui les a émis.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Union

from approvisionnement.domain import commands, events
from approvisionnement.domain.exceptions import ErreurMétier
from approvisionnement.service_layer import unit_of_work

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
        Traite un message puis tous les événements qui en découlent.

        Retourne les résultats des command handlers (identifiant de la
        commande ou de la ligne concernée), dans l'ordre de traitement.
        """
        queue: list[Message] = [message]
        results: list[Any] = []
        while queue:
            suivant = queue.pop(0)
            if isinstance(suivant, commands.Command):
                results.append(self._exécuter_command(suivant, queue))
            elif isinstance(suivant, events.Event):
                self._publier_event(suivant, queue)
            else:
                raise ValueError(f"Message de type inconnu : {type(suivant)}")
        return results

    def _exécuter_command(self, command: commands.Command, queue: list[Message]) -> Any:
        handler = self.command_handlers.get(type(command))
        if handler is None:
            raise ValueError(f"Aucun handler pour la command {type(command).__name__}")
        logger.debug("Command %s", command)
        try:
            result = handler(command)
        except ErreurMétier as erreur:
            logger.info(
                "Command %s refusée (%s) : %s",
                type(command).__name__, erreur.code, erreur.message,
            )
            raise
        queue.extend(self.uow.collect_new_events())
        return result

    def _publier_event(self, event: events.Event, queue: list[Message]) -> None:
        for handler in self.event_handlers.get(type(event), []):
            try:
                logger.debug("Event %s -> %s", event, getattr(handler, "func", handler).__name__)
                handler(event)
            except Exception:
                logger.exception("Échec du handler d'event pour %s", event)
                continue
            queue.extend(self.uow.collect_new_events())
