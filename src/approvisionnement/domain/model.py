"""
Modèle de domaine des commandes d'approvisionnement.

Une Commande regroupe des LigneDeCommande pour un Projet. Elle suit
un cycle de vie monotone (assignation d'un fournisseur puis validation
par celui-ci). La validation d'une ligne produit exactement une
EntréeStock, qui garde une référence vers la ligne d'origine.

La Commande est l'agrégat racine : les transitions des lignes passent
par elle, ce qui lui permet de vérifier l'appartenance des lignes et
d'émettre les événements du domaine.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from approvisionnement.domain import events
from approvisionnement.domain.exceptions import (
    DonnéesInvalides,
    DoublonStock,
    IntégritéDonnées,
    LigneEnDouble,
    TransitionInvalide,
)


def nouvel_identifiant() -> str:
    return str(uuid.uuid4())


def maintenant() -> datetime:
    return datetime.now(timezone.utc)


# --- Énumérations ---


class Rôle(str, Enum):
    CHEF_PROJET = "ChefProjet"
    FOURNISSEUR = "Supplier"
    ADMIN = "Admin"


class StatutCommande(str, Enum):
    EN_ATTENTE_ASSIGNATION = "EnAttenteAssignation"
    EN_ATTENTE_VALIDATION = "EnAttenteValidationFournisseur"
    VALIDÉE = "ValideeFournisseur"


class StatutLigne(str, Enum):
    SOUMIS = "Soumis"
    VALIDÉE = "ValidéFournisseur"
    ANNULÉE = "Annulé"


# --- Acteurs et référentiel ---


@dataclass(frozen=True)
class Acteur:
    """Identité et rôle de l'appelant, tels que portés par le jeton."""

    id: str
    rôle: Rôle

    @property
    def est_admin(self) -> bool:
        return self.rôle == Rôle.ADMIN


@dataclass(frozen=True)
class FicheFournisseur:
    """Coordonnées propres aux utilisateurs de rôle Supplier."""

    contact: str
    téléphone: str
    adresse: str


class Utilisateur:
    """
    Utilisateur unique, distingué par son rôle.

    Les coordonnées fournisseur ne sont présentes que pour le rôle
    Supplier ; elles sont stockées à plat et exposées sous forme
    de FicheFournisseur.
    """

    def __init__(
        self,
        id: str,
        nom_utilisateur: str,
        email: str,
        rôle: Rôle,
        fiche_fournisseur: Optional[FicheFournisseur] = None,
    ):
        if fiche_fournisseur is not None and rôle != Rôle.FOURNISSEUR:
            raise DonnéesInvalides(
                "Seul un fournisseur peut avoir une fiche fournisseur",
                {"role": rôle.value},
            )
        self.id = id
        self.nom_utilisateur = nom_utilisateur
        self.email = email
        self.rôle = rôle
        self._contact = fiche_fournisseur.contact if fiche_fournisseur else None
        self._téléphone = fiche_fournisseur.téléphone if fiche_fournisseur else None
        self._adresse = fiche_fournisseur.adresse if fiche_fournisseur else None

    def __repr__(self) -> str:
        return f"<Utilisateur {self.nom_utilisateur} ({self.rôle.value})>"

    @property
    def fiche_fournisseur(self) -> Optional[FicheFournisseur]:
        if self.rôle != Rôle.FOURNISSEUR or self._contact is None:
            return None
        return FicheFournisseur(self._contact, self._téléphone, self._adresse)

    @property
    def est_fournisseur(self) -> bool:
        return self.rôle == Rôle.FOURNISSEUR


class Projet:
    def __init__(self, id: str, nom: str, id_chef_projet: str):
        self.id = id
        self.nom = nom
        self.id_chef_projet = id_chef_projet

    def __repr__(self) -> str:
        return f"<Projet {self.nom}>"

    def est_géré_par(self, acteur: Acteur) -> bool:
        return acteur.rôle == Rôle.CHEF_PROJET and acteur.id == self.id_chef_projet


class TypeProduit:
    """Entrée du catalogue : nom, unité de mesure et catégorie."""

    def __init__(self, id: str, nom: str, unité: str, catégorie: Optional[str] = None):
        self.id = id
        self.nom = nom
        self.unité = unité
        self.catégorie = catégorie

    def __repr__(self) -> str:
        return f"<TypeProduit {self.nom}>"


# --- Lignes et stock ---


@dataclass(frozen=True)
class ArticleDemandé:
    """Value Object décrivant une ligne demandée à la création d'une commande."""

    id_type_produit: str
    quantité: int
    prix_unitaire: Optional[Decimal] = None


class LigneDeCommande:
    """
    Entité représentant une ligne de commande.

    Le statut part de Soumis et ne change qu'une fois, vers
    ValidéFournisseur ou Annulé.
    """

    def __init__(
        self,
        id: str,
        id_commande: str,
        id_type_produit: str,
        quantité_commandée: int,
        prix_unitaire: Optional[Decimal] = None,
        statut: StatutLigne = StatutLigne.SOUMIS,
    ):
        self.id = id
        self.id_commande = id_commande
        self.id_type_produit = id_type_produit
        self.quantité_commandée = quantité_commandée
        self.prix_unitaire = prix_unitaire
        self.statut = statut

    def __repr__(self) -> str:
        return f"<LigneDeCommande {self.id} {self.statut.value}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LigneDeCommande):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def est_soumise(self) -> bool:
        return self.statut == StatutLigne.SOUMIS

    def _passer_à(self, statut: StatutLigne) -> None:
        if not self.est_soumise:
            raise TransitionInvalide(
                "CommandItem", self.statut.value, StatutLigne.SOUMIS.value
            )
        self.statut = statut


class EntréeStock:
    """
    Ligne du registre de stock.

    Créée une seule fois, au moment où la ligne de commande d'origine
    est validée ; la quantité disponible part de la quantité commandée.
    """

    def __init__(
        self,
        id: str,
        id_type_produit: str,
        id_ligne: str,
        quantité_disponible: int,
        date_entrée: Optional[datetime] = None,
    ):
        if quantité_disponible < 0:
            raise DonnéesInvalides("La quantité disponible ne peut pas être négative")
        self.id = id
        self.id_type_produit = id_type_produit
        self.id_ligne = id_ligne
        self.quantité_disponible = quantité_disponible
        self.date_entrée = date_entrée or maintenant()

    def __repr__(self) -> str:
        return f"<EntréeStock {self.id_ligne} x{self.quantité_disponible}>"

    @classmethod
    def depuis_ligne(cls, ligne: LigneDeCommande, date_entrée: datetime) -> EntréeStock:
        return cls(
            id=nouvel_identifiant(),
            id_type_produit=ligne.id_type_produit,
            id_ligne=ligne.id,
            quantité_disponible=ligne.quantité_commandée,
            date_entrée=date_entrée,
        )


# --- Agrégat Commande ---


class Commande:
    """
    Agrégat racine : en-tête d'une commande d'approvisionnement.

    Le statut suit le chemin
    EnAttenteAssignation -> EnAttenteValidationFournisseur -> ValideeFournisseur
    sans jamais revenir en arrière. Chaque transition incrémente
    numéro_version, utilisé comme garde de concurrence optimiste.
    """

    def __init__(
        self,
        id: str,
        nom: str,
        montant_total: Decimal,
        id_projet: str,
        type: Optional[str] = None,
        date_commande: Optional[datetime] = None,
        statut: StatutCommande = StatutCommande.EN_ATTENTE_ASSIGNATION,
        id_fournisseur: Optional[str] = None,
        numéro_version: int = 0,
    ):
        self.id = id
        self.nom = nom
        self.type = type
        self.montant_total = montant_total
        self.id_projet = id_projet
        self.date_commande = date_commande or maintenant()
        self.statut = statut
        self.id_fournisseur = id_fournisseur
        self.numéro_version = numéro_version
        self.événements: list[events.Event] = []

    def __repr__(self) -> str:
        return f"<Commande {self.nom} {self.statut.value}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Commande):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def est_assignée_à(self, acteur: Acteur) -> bool:
        return self.id_fournisseur is not None and self.id_fournisseur == acteur.id

    def _exiger_statut(self, requis: StatutCommande) -> None:
        if self.statut != requis:
            raise TransitionInvalide("Commande", self.statut.value, requis.value)

    def _vérifier_intégrité(self) -> None:
        """Un champ obligatoire absent signale une donnée corrompue."""
        manquants = [
            champ
            for champ, valeur in (
                ("name", self.nom),
                ("montantTotal", self.montant_total),
                ("projetId", self.id_projet),
                ("dateCmd", self.date_commande),
            )
            if valeur is None or valeur == ""
        ]
        if manquants:
            raise IntégritéDonnées(
                f"Commande {self.id} incomplète : {', '.join(manquants)}",
                {"champs_manquants": manquants},
            )

    def _vérifier_appartenance(self, ligne: LigneDeCommande) -> None:
        if ligne.id_commande != self.id:
            raise IntégritéDonnées(
                f"La ligne {ligne.id} n'appartient pas à la commande {self.id}"
            )

    def assigner_fournisseur(self, id_fournisseur: str) -> None:
        self._exiger_statut(StatutCommande.EN_ATTENTE_ASSIGNATION)
        self._vérifier_intégrité()
        self.id_fournisseur = id_fournisseur
        self.statut = StatutCommande.EN_ATTENTE_VALIDATION
        self.numéro_version += 1
        self.événements.append(
            events.FournisseurAssigné(id_commande=self.id, id_fournisseur=id_fournisseur)
        )

    def valider(
        self,
        lignes: Iterable[LigneDeCommande],
        date_entrée: datetime,
        lignes_avec_stock: Iterable[str] = (),
    ) -> list[EntréeStock]:
        """
        Valide la commande et toutes ses lignes encore soumises.

        Retourne une EntréeStock par ligne validée ici. Les lignes déjà
        validées individuellement gardent leur stock, les lignes annulées
        n'en reçoivent pas. Si une ligne à valider a déjà un stock,
        DoublonStock est levée avant toute modification.
        """
        self._exiger_statut(StatutCommande.EN_ATTENTE_VALIDATION)
        lignes = list(lignes)
        for ligne in lignes:
            self._vérifier_appartenance(ligne)
        à_valider = [ligne for ligne in lignes if ligne.est_soumise]
        déjà_en_stock = set(lignes_avec_stock)
        for ligne in à_valider:
            if ligne.id in déjà_en_stock:
                raise DoublonStock(ligne.id)

        self.statut = StatutCommande.VALIDÉE
        self.numéro_version += 1
        entrées = []
        for ligne in à_valider:
            ligne._passer_à(StatutLigne.VALIDÉE)
            entrées.append(EntréeStock.depuis_ligne(ligne, date_entrée))

        self.événements.append(
            events.CommandeValidée(
                id_commande=self.id,
                id_projet=self.id_projet,
                nb_lignes_validées=len(à_valider),
            )
        )
        self.événements.extend(_événements_stock(entrées))
        return entrées

    def valider_ligne(
        self,
        ligne: LigneDeCommande,
        date_entrée: datetime,
        stock_existant: bool = False,
    ) -> Optional[EntréeStock]:
        """
        Valide une seule ligne.

        Retourne l'EntréeStock à enregistrer, ou None si la ligne
        a déjà un stock (l'appel est alors sans effet sur le stock).
        """
        self._vérifier_appartenance(ligne)
        ligne._passer_à(StatutLigne.VALIDÉE)
        self.numéro_version += 1
        self.événements.append(events.LigneValidée(id_commande=self.id, id_ligne=ligne.id))
        if stock_existant:
            return None
        entrée = EntréeStock.depuis_ligne(ligne, date_entrée)
        self.événements.extend(_événements_stock([entrée]))
        return entrée

    def annuler_ligne(self, ligne: LigneDeCommande) -> None:
        self._vérifier_appartenance(ligne)
        ligne._passer_à(StatutLigne.ANNULÉE)
        self.numéro_version += 1
        self.événements.append(events.LigneAnnulée(id_commande=self.id, id_ligne=ligne.id))


def _événements_stock(entrées: list[EntréeStock]) -> list[events.Event]:
    return [
        events.StockCréé(
            id_entrée=entrée.id,
            id_ligne=entrée.id_ligne,
            id_type_produit=entrée.id_type_produit,
            quantité=entrée.quantité_disponible,
        )
        for entrée in entrées
    ]


def nouvelle_commande(
    id_projet: str,
    nom: str,
    montant_total: Decimal,
    articles: Iterable[ArticleDemandé],
    type: Optional[str] = None,
    date_commande: Optional[datetime] = None,
) -> tuple[Commande, list[LigneDeCommande]]:
    """
    Construit une commande et ses lignes soumises.

    Vérifie les règles qui ne dépendent pas de la base : nom présent,
    montant positif ou nul, au moins une ligne, quantités >= 1, prix
    positifs ou nuls, pas deux lignes sur le même type de produit.
    """
    articles = list(articles)
    erreurs: dict[str, str] = {}
    if not nom or not nom.strip():
        erreurs["name"] = "Le nom de la commande est requis"
    if montant_total is None or montant_total < 0:
        erreurs["montantTotal"] = "Le montant total doit être positif ou nul"
    if not articles:
        erreurs["items"] = "La commande doit contenir au moins une ligne"
    for index, article in enumerate(articles):
        if article.quantité < 1:
            erreurs[f"items.{index}.quantiteCommandee"] = "La quantité doit être d'au moins 1"
        if article.prix_unitaire is not None and article.prix_unitaire < 0:
            erreurs[f"items.{index}.prixUnitaire"] = "Le prix unitaire ne peut pas être négatif"
    if erreurs:
        raise DonnéesInvalides("Commande invalide", erreurs)

    vus: set[str] = set()
    for article in articles:
        if article.id_type_produit in vus:
            raise LigneEnDouble(article.id_type_produit)
        vus.add(article.id_type_produit)

    commande = Commande(
        id=nouvel_identifiant(),
        nom=nom.strip(),
        montant_total=montant_total,
        id_projet=id_projet,
        type=type,
        date_commande=date_commande,
    )
    lignes = [
        LigneDeCommande(
            id=nouvel_identifiant(),
            id_commande=commande.id,
            id_type_produit=article.id_type_produit,
            quantité_commandée=article.quantité,
            prix_unitaire=article.prix_unitaire,
        )
        for article in articles
    ]
    commande.événements.append(
        events.CommandeCréée(
            id_commande=commande.id, id_projet=id_projet, nb_lignes=len(lignes)
        )
    )
    return commande, lignes
