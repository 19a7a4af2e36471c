"""
Events du domaine.

Les events représentent des faits qui se sont produits dans le système.
Ils sont immuables et nommés au passé (quelque chose s'est passé).
"""

from dataclasses import dataclass


class Event:
    """Classe de base pour tous les events du domaine."""
    pass


@dataclass(frozen=True)
class CommandeCréée(Event):
    """Une commande et ses lignes ont été enregistrées pour un projet."""

    id_commande: str
    id_projet: str
    nb_lignes: int


@dataclass(frozen=True)
class FournisseurAssigné(Event):
    """Un fournisseur a été assigné à une commande."""

    id_commande: str
    id_fournisseur: str


@dataclass(frozen=True)
class CommandeValidée(Event):
    """Le fournisseur a validé la commande entière."""

    id_commande: str
    id_projet: str
    nb_lignes_validées: int


@dataclass(frozen=True)
class LigneValidée(Event):
    id_commande: str
    id_ligne: str


@dataclass(frozen=True)
class LigneAnnulée(Event):
    id_commande: str
    id_ligne: str


@dataclass(frozen=True)
class StockCréé(Event):
    """Une entrée de stock a été créée à partir d'une ligne validée."""

    id_entrée: str
    id_ligne: str
    id_type_produit: str
    quantité: int
