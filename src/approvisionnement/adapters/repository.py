"""
Pattern Repository.

Le repository fournit une abstraction sur la couche de persistance.
Il expose une interface de type collection (add, get) qui masque
les détails de l'accès aux données.

Trois repositories :
- commandes : l'agrégat Commande et ses lignes ;
- stocks : le registre des entrées de stock ;
- référentiel : projets, utilisateurs et catalogue, en lecture seule.

Les lignes référencent leur commande, pas l'inverse : on les charge
par une requête explicite (lignes_de_commande).
"""

from __future__ import annotations

import abc
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from approvisionnement.domain import model


class AbstractCommandeRepository(abc.ABC):
    """
    Interface abstraite du repository de commandes.

    Le pattern Template Method est utilisé : les méthodes publiques
    (add, get, get_par_ligne) gèrent le tracking via `seen`, puis délèguent
    aux méthodes abstraites préfixées _ que les sous-classes implémentent.
    """

    seen: set[model.Commande]

    def __init__(self) -> None:
        # `seen` trace les commandes consultées pendant la transaction,
        # ce qui permet au Unit of Work de collecter leurs événements.
        self.seen: set[model.Commande] = set()

    def add(self, commande: model.Commande, lignes: Iterable[model.LigneDeCommande]) -> None:
        """Ajoute une commande et ses lignes, et marque la commande comme vue."""
        self._add(commande, list(lignes))
        self.seen.add(commande)

    def get(self, id_commande: str) -> model.Commande | None:
        commande = self._get(id_commande)
        if commande:
            self.seen.add(commande)
        return commande

    def get_par_ligne(self, id_ligne: str) -> tuple[model.LigneDeCommande, model.Commande | None] | None:
        """
        Récupère une ligne et sa commande parente.

        Retourne None si la ligne n'existe pas ; la commande vaut None
        si la ligne pointe vers une commande absente.
        """
        ligne = self._get_ligne(id_ligne)
        if ligne is None:
            return None
        commande = self.get(ligne.id_commande)
        return ligne, commande

    def lignes_de_commande(self, id_commande: str) -> list[model.LigneDeCommande]:
        """Lignes d'une commande, triées par identifiant."""
        return self._lignes_de_commande(id_commande)

    def supprimer(self, commande: model.Commande) -> None:
        """Supprime une commande et toutes ses lignes."""
        self._supprimer(commande, self._lignes_de_commande(commande.id))
        self.seen.discard(commande)

    @abc.abstractmethod
    def _add(self, commande: model.Commande, lignes: list[model.LigneDeCommande]) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def _get(self, id_commande: str) -> model.Commande | None:
        raise NotImplementedError

    @abc.abstractmethod
    def _get_ligne(self, id_ligne: str) -> model.LigneDeCommande | None:
        raise NotImplementedError

    @abc.abstractmethod
    def _lignes_de_commande(self, id_commande: str) -> list[model.LigneDeCommande]:
        raise NotImplementedError

    @abc.abstractmethod
    def _supprimer(self, commande: model.Commande, lignes: list[model.LigneDeCommande]) -> None:
        raise NotImplementedError


class AbstractStockRepository(abc.ABC):
    """Registre des entrées de stock : une entrée au plus par ligne de commande."""

    @abc.abstractmethod
    def add(self, entrée: model.EntréeStock) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def get_par_ligne(self, id_ligne: str) -> model.EntréeStock | None:
        raise NotImplementedError

    @abc.abstractmethod
    def lignes_en_stock(self, ids_lignes: Iterable[str]) -> set[str]:
        """Parmi les lignes données, celles qui ont déjà une entrée de stock."""
        raise NotImplementedError


class AbstractRéférentiel(abc.ABC):
    """Accès en lecture aux projets, utilisateurs et types de produits."""

    @abc.abstractmethod
    def projet(self, id_projet: str) -> model.Projet | None:
        raise NotImplementedError

    @abc.abstractmethod
    def utilisateur(self, id_utilisateur: str) -> model.Utilisateur | None:
        raise NotImplementedError

    @abc.abstractmethod
    def types_produits(self, ids: Iterable[str]) -> dict[str, model.TypeProduit]:
        """Types de produits existants parmi `ids`, indexés par id (une seule requête)."""
        raise NotImplementedError


# --- Implémentations SQLAlchemy ---


class SqlAlchemyCommandeRepository(AbstractCommandeRepository):
    """Implémentation concrète du repository de commandes avec SQLAlchemy."""

    def __init__(self, session: Session):
        super().__init__()
        self.session = session

    def _add(self, commande: model.Commande, lignes: list[model.LigneDeCommande]) -> None:
        self.session.add(commande)
        self.session.add_all(lignes)

    def _get(self, id_commande: str) -> model.Commande | None:
        return self.session.get(model.Commande, id_commande)

    def _get_ligne(self, id_ligne: str) -> model.LigneDeCommande | None:
        return self.session.get(model.LigneDeCommande, id_ligne)

    def _lignes_de_commande(self, id_commande: str) -> list[model.LigneDeCommande]:
        return list(
            self.session.scalars(
                select(model.LigneDeCommande)
                .filter_by(id_commande=id_commande)
                .order_by(model.LigneDeCommande.id)
            )
        )

    def _supprimer(self, commande: model.Commande, lignes: list[model.LigneDeCommande]) -> None:
        for ligne in lignes:
            self.session.delete(ligne)
        self.session.delete(commande)


class SqlAlchemyStockRepository(AbstractStockRepository):
    def __init__(self, session: Session):
        self.session = session

    def add(self, entrée: model.EntréeStock) -> None:
        self.session.add(entrée)

    def get_par_ligne(self, id_ligne: str) -> model.EntréeStock | None:
        return self.session.scalars(
            select(model.EntréeStock).filter_by(id_ligne=id_ligne)
        ).first()

    def lignes_en_stock(self, ids_lignes: Iterable[str]) -> set[str]:
        ids_lignes = list(ids_lignes)
        if not ids_lignes:
            return set()
        return set(
            self.session.scalars(
                select(model.EntréeStock.id_ligne).where(
                    model.EntréeStock.id_ligne.in_(ids_lignes)
                )
            )
        )


class SqlAlchemyRéférentiel(AbstractRéférentiel):
    def __init__(self, session: Session):
        self.session = session

    def projet(self, id_projet: str) -> model.Projet | None:
        return self.session.get(model.Projet, id_projet)

    def utilisateur(self, id_utilisateur: str) -> model.Utilisateur | None:
        return self.session.get(model.Utilisateur, id_utilisateur)

    def types_produits(self, ids: Iterable[str]) -> dict[str, model.TypeProduit]:
        ids = list(ids)
        if not ids:
            return {}
        trouvés = self.session.scalars(
            select(model.TypeProduit).where(model.TypeProduit.id.in_(ids))
        )
        return {type_produit.id: type_produit for type_produit in trouvés}
