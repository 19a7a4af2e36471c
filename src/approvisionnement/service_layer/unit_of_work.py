"""
Pattern Unit of Work.

Le Unit of Work (UoW) gère la notion de transaction atomique.
Il coordonne l'écriture en base de données et la collecte
des événements émis par les commandes au cours de la transaction.

Le UoW agit comme un context manager :
    with uow:
        # ... opérations sur les repositories ...
        uow.commit()

Sans appel à commit(), tout est annulé à la sortie du bloc : une
erreur levée dans un handler ne laisse jamais d'écriture partielle.
"""

from __future__ import annotations

import abc
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from approvisionnement import config
from approvisionnement.adapters import repository
from approvisionnement.domain.exceptions import (
    ConflitÉtat,
    ErreurTransaction,
    ViolationUnicité,
)


def default_session_factory() -> sessionmaker:
    uri = config.get_database_uri()
    return sessionmaker(
        bind=create_engine(
            uri,
            isolation_level="SERIALIZABLE",
            **config.get_engine_options(uri),
        )
    )


def traduire_erreur_bdd(erreur: Exception) -> Optional[Exception]:
    """Exception métier correspondant à une erreur SQLAlchemy, ou None."""
    if isinstance(erreur, IntegrityError):
        return ViolationUnicité(
            "Contrainte d'unicité ou d'intégrité violée",
            {"cause": str(erreur.orig)},
        )
    if isinstance(erreur, StaleDataError):
        return ConflitÉtat(
            "La commande a été modifiée par une autre requête",
            {"cause": str(erreur)},
        )
    if isinstance(erreur, DBAPIError):
        return ErreurTransaction(
            "La transaction n'a pas pu aboutir, veuillez réessayer",
            {"cause": str(erreur.orig)},
        )
    return None


class AbstractUnitOfWork(abc.ABC):
    """
    Interface abstraite du Unit of Work.

    Fournit les repositories `commandes`, `stocks` et `référentiel`
    et gère commit/rollback. Le rollback est automatique si commit()
    n'est pas appelé (grâce au __exit__ du context manager).
    """

    commandes: repository.AbstractCommandeRepository
    stocks: repository.AbstractStockRepository
    référentiel: repository.AbstractRéférentiel

    def __enter__(self) -> AbstractUnitOfWork:
        return self

    def __exit__(self, *args: object) -> None:
        self.rollback()

    def commit(self) -> None:
        self._commit()

    def collect_new_events(self):
        """
        Collecte tous les événements émis par les commandes vues
        pendant cette transaction.
        """
        for commande in self.commandes.seen:
            while commande.événements:
                yield commande.événements.pop(0)

    @abc.abstractmethod
    def _commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def rollback(self) -> None:
        raise NotImplementedError


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """
    Implémentation concrète du UoW avec SQLAlchemy.

    Crée une session à l'entrée du context manager,
    la ferme à la sortie. Rollback automatique si pas de commit.
    Les erreurs de la base sont traduites en exceptions métier
    (ConflitÉtat, ErreurTransaction) après le rollback.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory or default_session_factory()

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        self.session: Session = self.session_factory()
        self.commandes = repository.SqlAlchemyCommandeRepository(self.session)
        self.stocks = repository.SqlAlchemyStockRepository(self.session)
        self.référentiel = repository.SqlAlchemyRéférentiel(self.session)
        return super().__enter__()

    def __exit__(self, exc_type, exc, tb) -> None:
        super().__exit__(exc_type, exc, tb)
        self.session.close()
        if exc is not None:
            traduite = traduire_erreur_bdd(exc)
            if traduite is not None:
                raise traduite from exc

    def _commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
