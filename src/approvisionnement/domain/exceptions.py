"""
Exceptions métier.

Toutes les erreurs que le moteur de commandes peut lever dérivent
d'ErreurMétier. Chaque classe correspond à une famille d'erreurs
que l'API traduit en code HTTP (400, 403, 404, 409, 500, 503).
"""

from __future__ import annotations

from typing import Any, Optional


class ErreurMétier(Exception):
    """Classe de base des erreurs métier."""

    code = "ERREUR_METIER"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DonnéesInvalides(ErreurMétier):
    """Entrée mal formée ou incomplète. Jamais réessayée automatiquement."""

    code = "DONNEES_INVALIDES"


class Introuvable(ErreurMétier):
    """Une entité référencée n'existe pas."""

    code = "INTROUVABLE"

    def __init__(self, entité: str, identifiant: str):
        self.entité = entité
        self.identifiant = identifiant
        super().__init__(
            f"{entité} introuvable : {identifiant}",
            {"entite": entité, "id": identifiant},
        )


class AccèsRefusé(ErreurMétier):
    """L'acteur est authentifié mais n'a pas le rôle ou le lien requis."""

    code = "ACCES_REFUSE"


class ConflitÉtat(ErreurMétier):
    """L'opération est incompatible avec l'état actuel des données."""

    code = "CONFLIT_ETAT"


class TransitionInvalide(ConflitÉtat):
    """Transition de statut interdite depuis le statut courant."""

    code = "TRANSITION_INVALIDE"

    def __init__(self, entité: str, statut_actuel: str, statut_requis: str):
        self.statut_actuel = statut_actuel
        self.statut_requis = statut_requis
        super().__init__(
            f"{entité} au statut {statut_actuel}, statut requis : {statut_requis}",
            {
                "entite": entité,
                "statut_actuel": statut_actuel,
                "statut_requis": statut_requis,
            },
        )


class ViolationUnicité(ConflitÉtat):
    """La base a refusé une écriture qui dupliquait une clé unique."""

    code = "VIOLATION_UNICITE"


class LigneEnDouble(ConflitÉtat):
    """Deux lignes d'une même commande portent sur le même type de produit."""

    code = "LIGNE_EN_DOUBLE"

    def __init__(self, id_type_produit: str):
        self.id_type_produit = id_type_produit
        super().__init__(
            f"Type de produit présent plusieurs fois dans la commande : {id_type_produit}",
            {"productTypeId": id_type_produit},
        )


class DoublonStock(ConflitÉtat):
    """Une entrée de stock existe déjà pour cette ligne de commande."""

    code = "DOUBLON_STOCK"

    def __init__(self, id_ligne: str):
        self.id_ligne = id_ligne
        super().__init__(
            f"Le stock de la ligne de commande {id_ligne} existe déjà",
            {"commandItemId": id_ligne},
        )


class IntégritéDonnées(ErreurMétier):
    """Donnée stockée incohérente (champ obligatoire absent, parent manquant)."""

    code = "INTEGRITE_DONNEES"


class ErreurTransaction(ErreurMétier):
    """
    La transaction n'a pas pu être validée (contention, connexion, délai).

    Aucune écriture partielle n'a eu lieu : l'appelant peut réessayer.
    """

    code = "ERREUR_TRANSACTION"
