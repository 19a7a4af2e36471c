"""
Views (lecture) pour le pattern CQRS.

Les views sont des fonctions de lecture pure qui interrogent
directement la base de données, sans passer par le modèle de domaine
ni par le message bus. Elles appliquent la visibilité par rôle :
- Admin voit tout ;
- un ChefProjet voit les commandes des projets qu'il gère ;
- un Supplier voit les commandes qui lui sont assignées.

Les résultats sont des dictionnaires prêts à sérialiser en JSON,
avec les noms de champs de l'API (statutCmd, quantiteCommandee...).
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select

from approvisionnement.adapters.orm import (
    command_items,
    commandes,
    product_types,
    projects,
    stock,
)
from approvisionnement.domain.exceptions import AccèsRefusé, Introuvable
from approvisionnement.domain.model import Acteur, Rôle
from approvisionnement.service_layer import unit_of_work


def _nombre(valeur: Any) -> float | None:
    return float(valeur) if valeur is not None else None


def _date(valeur: Any) -> str | None:
    return valeur.isoformat() if valeur is not None else None


def _commande_en_dict(row: Any) -> dict:
    return {
        "id": row.id,
        "name": row.name,
        "type": row.type,
        "statutCmd": row.statut_cmd.value,
        "dateCmd": _date(row.date_cmd),
        "montantTotal": _nombre(row.montant_total),
        "fournisseurId": row.fournisseur_id,
        "projetId": row.projet_id,
    }


def _ligne_en_dict(row: Any) -> dict:
    return {
        "id": row.id,
        "commandeId": row.commande_id,
        "productTypeId": row.product_type_id,
        "quantiteCommandee": row.quantite_commandee,
        "prixUnitaire": _nombre(row.prix_unitaire),
        "statutLigne": row.statut_ligne.value,
        "productType": {
            "name": row.product_name,
            "unit": row.product_unit,
            "category": row.product_category,
        },
    }


def _select_lignes():
    return select(
        command_items,
        product_types.c.name.label("product_name"),
        product_types.c.unit.label("product_unit"),
        product_types.c.category.label("product_category"),
    ).outerjoin(product_types, command_items.c.product_type_id == product_types.c.id)


def _select_commandes_visibles(acteur: Acteur):
    requête = select(commandes).order_by(commandes.c.date_cmd.desc())
    if acteur.rôle == Rôle.ADMIN:
        return requête
    if acteur.rôle == Rôle.CHEF_PROJET:
        return requête.join(projects, commandes.c.projet_id == projects.c.id).where(
            projects.c.chef_projet_id == acteur.id
        )
    return requête.where(commandes.c.fournisseur_id == acteur.id)


def lister_commandes(acteur: Acteur, uow: unit_of_work.AbstractUnitOfWork) -> list[dict]:
    """Toutes les commandes visibles par l'acteur, les plus récentes d'abord."""
    with uow:
        rows = uow.session.execute(_select_commandes_visibles(acteur))
        return [_commande_en_dict(row) for row in rows]


def mes_commandes(acteur: Acteur, uow: unit_of_work.AbstractUnitOfWork) -> list[dict]:
    """Commandes assignées au fournisseur connecté."""
    if acteur.rôle != Rôle.FOURNISSEUR:
        raise AccèsRefusé("Accès réservé aux fournisseurs")
    return lister_commandes(acteur, uow)


def commandes_du_projet(
    id_projet: str, acteur: Acteur, uow: unit_of_work.AbstractUnitOfWork
) -> list[dict]:
    with uow:
        projet = uow.session.execute(
            select(projects).where(projects.c.id == id_projet)
        ).first()
        if projet is None:
            raise Introuvable("Projet", id_projet)
        est_chef = acteur.rôle == Rôle.CHEF_PROJET and projet.chef_projet_id == acteur.id
        if not (acteur.est_admin or est_chef):
            raise AccèsRefusé("Accès réservé à l'administrateur ou au chef du projet")
        rows = uow.session.execute(
            select(commandes)
            .where(commandes.c.projet_id == id_projet)
            .order_by(commandes.c.date_cmd.desc())
        )
        return [_commande_en_dict(row) for row in rows]


def _lire_commande(session, id_commande: str):
    row = session.execute(
        select(commandes, projects.c.chef_projet_id)
        .outerjoin(projects, commandes.c.projet_id == projects.c.id)
        .where(commandes.c.id == id_commande)
    ).first()
    if row is None:
        raise Introuvable("Commande", id_commande)
    return row


def _avec_lignes(session, row) -> dict:
    """
    Ajoute à la commande ses lignes et le détail de leurs types de produits.

    Les lignes sont chargées par une requête séparée sur command_items :
    la commande ne connaît pas ses lignes.
    """
    lignes = session.execute(
        _select_lignes()
        .where(command_items.c.commande_id == row.id)
        .order_by(command_items.c.id)
    )
    résultat = _commande_en_dict(row)
    résultat["items"] = [_ligne_en_dict(ligne) for ligne in lignes]
    return résultat


def commande_avec_lignes(id_commande: str, uow: unit_of_work.AbstractUnitOfWork) -> dict:
    """Lecture sans contrôle de visibilité, pour répondre à l'auteur d'une écriture."""
    with uow:
        return _avec_lignes(uow.session, _lire_commande(uow.session, id_commande))


def commande_détaillée(
    id_commande: str, acteur: Acteur, uow: unit_of_work.AbstractUnitOfWork
) -> dict:
    """Une commande et ses lignes, si l'acteur a le droit de la voir."""
    with uow:
        row = _lire_commande(uow.session, id_commande)
        autorisé = (
            acteur.est_admin
            or (row.fournisseur_id is not None and row.fournisseur_id == acteur.id)
            or (acteur.rôle == Rôle.CHEF_PROJET and row.chef_projet_id == acteur.id)
        )
        if not autorisé:
            raise AccèsRefusé("Accès refusé à cette commande", {"commandeId": id_commande})
        return _avec_lignes(uow.session, row)


def ligne_de_commande(id_ligne: str, uow: unit_of_work.AbstractUnitOfWork) -> dict:
    with uow:
        row = uow.session.execute(
            _select_lignes().where(command_items.c.id == id_ligne)
        ).first()
        if row is None:
            raise Introuvable("CommandItem", id_ligne)
        return _ligne_en_dict(row)


def catalogue_types_produits(uow: unit_of_work.AbstractUnitOfWork) -> list[dict]:
    with uow:
        rows = uow.session.execute(select(product_types).order_by(product_types.c.name))
        return [
            {"id": row.id, "name": row.name, "unit": row.unit, "category": row.category}
            for row in rows
        ]


def registre_stock(uow: unit_of_work.AbstractUnitOfWork) -> list[dict]:
    """Entrées de stock, les plus récentes d'abord, avec leur type de produit."""
    with uow:
        rows = uow.session.execute(
            select(
                stock,
                product_types.c.name.label("product_name"),
                product_types.c.unit.label("product_unit"),
            )
            .outerjoin(product_types, stock.c.product_type_id == product_types.c.id)
            .order_by(stock.c.date_entree_stock.desc())
        )
        return [
            {
                "id": row.id,
                "productTypeId": row.product_type_id,
                "commandItemId": row.command_item_id,
                "quantiteDisponible": row.quantite_disponible,
                "dateEntreeStock": _date(row.date_entree_stock),
                "productType": {"name": row.product_name, "unit": row.product_unit},
            }
            for row in rows
        ]
