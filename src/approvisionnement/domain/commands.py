"""
Commands du domaine.

Les commands représentent des intentions : quelque chose que
le système doit faire. Contrairement aux events (faits passés),
les commands sont des demandes qui peuvent échouer.

Chaque command porte l'Acteur qui la demande : les handlers
vérifient son rôle avant d'agir.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from approvisionnement.domain.model import Acteur, ArticleDemandé


class Command:
    """Classe de base pour toutes les commands."""
    pass


@dataclass(frozen=True)
class CréerCommande(Command):
    """Demande de création d'une commande et de ses lignes."""

    acteur: Acteur
    id_projet: str
    nom: str
    montant_total: Decimal
    articles: tuple[ArticleDemandé, ...]
    type: Optional[str] = None
    date_commande: Optional[datetime] = None


@dataclass(frozen=True)
class AssignerFournisseur(Command):
    acteur: Acteur
    id_commande: str
    id_fournisseur: str


@dataclass(frozen=True)
class ValiderCommande(Command):
    """Validation de la commande entière par le fournisseur assigné."""

    acteur: Acteur
    id_commande: str


@dataclass(frozen=True)
class ModifierStatutLigne(Command):
    """Validation ou annulation d'une seule ligne de commande."""

    acteur: Acteur
    id_ligne: str
    statut: str


@dataclass(frozen=True)
class SupprimerCommande(Command):
    acteur: Acteur
    id_commande: str
