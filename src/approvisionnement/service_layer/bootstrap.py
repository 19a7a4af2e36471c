"""
Bootstrap : assemblage de l'application (Composition Root).

Ce module construit le message bus avec toutes ses dépendances.
C'est le seul endroit qui connaît les implémentations concrètes
de chaque abstraction ; les tests y injectent leurs fakes.
"""

from __future__ import annotations

import functools
import inspect
from typing import Any, Callable

from sqlalchemy.orm import sessionmaker

from approvisionnement import config
from approvisionnement.adapters import notifications, orm
from approvisionnement.domain import commands, events
from approvisionnement.service_layer import handlers, messagebus, unit_of_work


def bootstrap(
    start_orm: bool = True,
    uow: unit_of_work.AbstractUnitOfWork | None = None,
    notifications_adapter: notifications.AbstractNotifications | None = None,
    **extra_dependencies: Any,
) -> messagebus.MessageBus:
    """
    Construit le MessageBus de l'application.

    Sans argument : mapping ORM démarré, UoW SQLAlchemy sur DATABASE_URI
    et notifications par e-mail (SMTP_*). Les tests passent
    start_orm=False et leurs propres uow / notifications_adapter.
    """
    if start_orm:
        orm.start_mappers()

    if uow is None:
        uow = unit_of_work.SqlAlchemyUnitOfWork()

    if notifications_adapter is None:
        notifications_adapter = notifications.EmailNotifications(**config.get_smtp_config())

    dependencies: dict[str, Any] = {
        "uow": uow,
        "notifications": notifications_adapter,
        **extra_dependencies,
    }
    injected_event_handlers = {
        event_type: [injecter_dépendances(handler, dependencies) for handler in liste]
        for event_type, liste in EVENT_HANDLERS.items()
    }
    injected_command_handlers = {
        command_type: injecter_dépendances(handler, dependencies)
        for command_type, handler in COMMAND_HANDLERS.items()
    }
    return messagebus.MessageBus(
        uow=uow,
        event_handlers=injected_event_handlers,
        command_handlers=injected_command_handlers,
    )


def injecter_dépendances(handler: Callable, dependencies: dict[str, Any]) -> Callable:
    """
    Lie un handler aux dépendances qu'il déclare.

    Le premier paramètre est le message ; les suivants sont résolus
    par nom dans `dependencies`.
    """
    params = list(inspect.signature(handler).parameters)[1:]
    kwargs = {name: dependencies[name] for name in params if name in dependencies}
    return functools.partial(handler, **kwargs)


# --- Routage des messages vers les handlers ---

EVENT_HANDLERS: dict[type[events.Event], list[Callable]] = {
    events.CommandeCréée: [handlers.journaliser_événement],
    events.FournisseurAssigné: [
        handlers.journaliser_événement,
        handlers.notifier_fournisseur_assigné,
    ],
    events.CommandeValidée: [
        handlers.journaliser_événement,
        handlers.notifier_commande_validée,
    ],
    events.LigneValidée: [handlers.journaliser_événement],
    events.LigneAnnulée: [handlers.journaliser_événement],
    events.StockCréé: [handlers.journaliser_événement],
}

COMMAND_HANDLERS: dict[type[commands.Command], Callable] = {
    commands.CréerCommande: handlers.créer_commande,
    commands.AssignerFournisseur: handlers.assigner_fournisseur,
    commands.ValiderCommande: handlers.valider_commande,
    commands.ModifierStatutLigne: handlers.modifier_statut_ligne,
    commands.SupprimerCommande: handlers.supprimer_commande,
}


def fabrique_bus(
    start_orm: bool = True,
    session_factory: sessionmaker | None = None,
    notifications_adapter: notifications.AbstractNotifications | None = None,
) -> Callable[[], messagebus.MessageBus]:
    """
    Prépare une fabrique de MessageBus, un bus par requête.

    Le mapping ORM, le moteur et l'adaptateur de notifications sont créés
    une seule fois ; chaque appel retourne un bus neuf avec son propre
    SqlAlchemyUnitOfWork, donc sa propre session.
    """
    if start_orm:
        orm.start_mappers()
    if session_factory is None:
        session_factory = unit_of_work.default_session_factory()
    if notifications_adapter is None:
        notifications_adapter = notifications.EmailNotifications(**config.get_smtp_config())

    def nouveau_bus() -> messagebus.MessageBus:
        return bootstrap(
            start_orm=False,
            uow=unit_of_work.SqlAlchemyUnitOfWork(session_factory),
            notifications_adapter=notifications_adapter,
        )

    return nouveau_bus
