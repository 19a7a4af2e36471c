"""
Handlers pour les commands et events.

Les handlers sont les fonctions qui traitent les commands et events
transitant par le message bus. Les command handlers forment le moteur
du cycle de vie des commandes : chacun s'exécute dans une seule
transaction du Unit of Work.

- Command handlers : exécutent une action (peuvent échouer)
- Event handlers : réagissent à un fait passé (ne doivent pas échouer)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from approvisionnement.domain import commands, events, model
from approvisionnement.domain.exceptions import (
    AccèsRefusé,
    ConflitÉtat,
    DonnéesInvalides,
    DoublonStock,
    IntégritéDonnées,
    Introuvable,
    ViolationUnicité,
)

if TYPE_CHECKING:
    from approvisionnement.adapters.notifications import AbstractNotifications
    from approvisionnement.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)

STATUTS_LIGNE_AUTORISÉS = (model.StatutLigne.VALIDÉE, model.StatutLigne.ANNULÉE)


def _exiger_admin_ou_fournisseur_assigné(
    acteur: model.Acteur, commande: model.Commande
) -> None:
    if not (acteur.est_admin or commande.est_assignée_à(acteur)):
        raise AccèsRefusé(
            "Accès refusé : réservé à l'administrateur ou au fournisseur assigné",
            {"commandeId": commande.id},
        )


# --- Command Handlers ---


def créer_commande(
    cmd: commands.CréerCommande,
    uow: AbstractUnitOfWork,
) -> str:
    """
    Crée une commande et ses lignes soumises, sans fournisseur.

    Les types de produits sont vérifiés en une seule requête ; le premier
    identifiant manquant (dans l'ordre de la demande) est signalé.
    Retourne l'identifiant de la commande créée.
    """
    if cmd.acteur.rôle != model.Rôle.CHEF_PROJET:
        raise AccèsRefusé("Seul un chef de projet peut créer une commande")

    commande, lignes = model.nouvelle_commande(
        id_projet=cmd.id_projet,
        nom=cmd.nom,
        montant_total=cmd.montant_total,
        articles=cmd.articles,
        type=cmd.type,
        date_commande=cmd.date_commande,
    )
    with uow:
        if uow.référentiel.projet(cmd.id_projet) is None:
            raise Introuvable("Projet", cmd.id_projet)
        ids_demandés = [article.id_type_produit for article in cmd.articles]
        existants = uow.référentiel.types_produits(ids_demandés)
        manquant = next((id_ for id_ in ids_demandés if id_ not in existants), None)
        if manquant is not None:
            raise Introuvable("ProductType", manquant)

        id_commande = commande.id
        uow.commandes.add(commande, lignes)
        uow.commit()

    logger.info(
        "Commande %s créée pour le projet %s (%d lignes)",
        id_commande, cmd.id_projet, len(cmd.articles),
    )
    return id_commande


def assigner_fournisseur(
    cmd: commands.AssignerFournisseur,
    uow: AbstractUnitOfWork,
) -> str:
    """
    Assigne un fournisseur à une commande en attente d'assignation.

    Réservé à l'administrateur et au chef du projet de la commande.
    """
    with uow:
        commande = uow.commandes.get(cmd.id_commande)
        if commande is None:
            raise Introuvable("Commande", cmd.id_commande)

        if not cmd.acteur.est_admin:
            projet = uow.référentiel.projet(commande.id_projet)
            if projet is None or not projet.est_géré_par(cmd.acteur):
                raise AccèsRefusé(
                    "Accès refusé : réservé à l'administrateur ou au chef du projet",
                    {"commandeId": commande.id},
                )

        fournisseur = uow.référentiel.utilisateur(cmd.id_fournisseur)
        if fournisseur is None:
            raise Introuvable("Supplier", cmd.id_fournisseur)
        if not fournisseur.est_fournisseur:
            raise DonnéesInvalides(
                f"L'utilisateur {cmd.id_fournisseur} n'est pas un fournisseur",
                {"supplierId": cmd.id_fournisseur, "role": fournisseur.rôle.value},
            )

        commande.assigner_fournisseur(cmd.id_fournisseur)
        uow.commit()

    logger.info("Commande %s assignée au fournisseur %s", cmd.id_commande, cmd.id_fournisseur)
    return cmd.id_commande


def valider_commande(
    cmd: commands.ValiderCommande,
    uow: AbstractUnitOfWork,
) -> str:
    """
    Valide la commande entière et crée le stock de chaque ligne validée.

    Statut de la commande, statuts des lignes et entrées de stock sont
    écrits dans la même transaction : si une entrée de stock existe déjà
    pour une ligne à valider, rien n'est modifié.
    """
    with uow:
        commande = uow.commandes.get(cmd.id_commande)
        if commande is None:
            raise Introuvable("Commande", cmd.id_commande)
        _exiger_admin_ou_fournisseur_assigné(cmd.acteur, commande)

        lignes = uow.commandes.lignes_de_commande(commande.id)
        lignes_avec_stock = uow.stocks.lignes_en_stock(
            ligne.id for ligne in lignes if ligne.est_soumise
        )
        entrées = commande.valider(lignes, model.maintenant(), lignes_avec_stock)
        if not lignes:
            logger.warning("Commande %s validée sans aucune ligne", cmd.id_commande)
        nb_entrées = len(entrées)
        for entrée in entrées:
            uow.stocks.add(entrée)
        uow.commit()

    logger.info(
        "Commande %s validée, %d entrées de stock créées", cmd.id_commande, nb_entrées
    )
    return cmd.id_commande


def modifier_statut_ligne(
    cmd: commands.ModifierStatutLigne,
    uow: AbstractUnitOfWork,
) -> str:
    """
    Valide ou annule une seule ligne de commande.

    À la validation, l'entrée de stock de la ligne est créée, sauf si
    elle existe déjà (la contrainte d'unicité reste le dernier rempart).
    Retourne l'identifiant de la ligne.
    """
    try:
        statut = model.StatutLigne(cmd.statut)
    except ValueError:
        statut = None
    if statut not in STATUTS_LIGNE_AUTORISÉS:
        raise DonnéesInvalides(
            f"Statut invalide : {cmd.statut}",
            {"statutLigne": [s.value for s in STATUTS_LIGNE_AUTORISÉS]},
        )

    try:
        with uow:
            trouvé = uow.commandes.get_par_ligne(cmd.id_ligne)
            if trouvé is None:
                raise Introuvable("CommandItem", cmd.id_ligne)
            ligne, commande = trouvé
            if commande is None:
                raise IntégritéDonnées(
                    f"Commande parente introuvable pour la ligne {ligne.id}",
                    {"commandeId": ligne.id_commande},
                )
            _exiger_admin_ou_fournisseur_assigné(cmd.acteur, commande)

            if statut == model.StatutLigne.VALIDÉE:
                stock_existant = uow.stocks.get_par_ligne(ligne.id) is not None
                if stock_existant:
                    logger.warning(
                        "Stock déjà présent pour la ligne %s, aucune nouvelle entrée",
                        ligne.id,
                    )
                entrée = commande.valider_ligne(ligne, model.maintenant(), stock_existant)
                if entrée is not None:
                    uow.stocks.add(entrée)
            else:
                commande.annuler_ligne(ligne)
            uow.commit()
    except ViolationUnicité as erreur:
        raise DoublonStock(cmd.id_ligne) from erreur

    logger.info("Ligne %s passée au statut %s", cmd.id_ligne, statut.value)
    return cmd.id_ligne


def supprimer_commande(
    cmd: commands.SupprimerCommande,
    uow: AbstractUnitOfWork,
) -> None:
    """
    Supprime une commande et ses lignes.

    Refusé dès qu'une ligne a produit une entrée de stock : le stock
    garde une référence permanente vers sa ligne d'origine.
    """
    with uow:
        commande = uow.commandes.get(cmd.id_commande)
        if commande is None:
            raise Introuvable("Commande", cmd.id_commande)
        _exiger_admin_ou_fournisseur_assigné(cmd.acteur, commande)

        lignes = uow.commandes.lignes_de_commande(commande.id)
        en_stock = uow.stocks.lignes_en_stock(ligne.id for ligne in lignes)
        if en_stock:
            raise ConflitÉtat(
                "Impossible de supprimer une commande dont des lignes sont en stock",
                {"commandItemIds": sorted(en_stock)},
            )
        uow.commandes.supprimer(commande)
        uow.commit()

    logger.info("Commande %s supprimée", cmd.id_commande)


# --- Event Handlers ---


def journaliser_événement(
    event: events.Event,
) -> None:
    """
    Publie un événement vers l'extérieur.

    Dans un système complet, cela publierait vers Redis, Kafka, etc.
    Ici l'événement est seulement journalisé.
    """
    logger.info("Événement publié : %s", event)


def notifier_fournisseur_assigné(
    event: events.FournisseurAssigné,
    uow: AbstractUnitOfWork,
    notifications: AbstractNotifications,
) -> None:
    """Prévient le fournisseur qu'une commande l'attend."""
    with uow:
        fournisseur = uow.référentiel.utilisateur(event.id_fournisseur)
        if fournisseur is None:
            logger.warning("Fournisseur %s introuvable, notification ignorée", event.id_fournisseur)
            return
        destination = fournisseur.email
    notifications.send(
        destination=destination,
        sujet="Nouvelle commande à valider",
        message=f"La commande {event.id_commande} vous a été assignée et attend votre validation.",
    )


def notifier_commande_validée(
    event: events.CommandeValidée,
    uow: AbstractUnitOfWork,
    notifications: AbstractNotifications,
) -> None:
    """Prévient le chef de projet que sa commande est validée et en stock."""
    with uow:
        projet = uow.référentiel.projet(event.id_projet)
        chef = uow.référentiel.utilisateur(projet.id_chef_projet) if projet else None
        if chef is None:
            logger.warning("Chef du projet %s introuvable, notification ignorée", event.id_projet)
            return
        destination = chef.email
    notifications.send(
        destination=destination,
        sujet="Commande validée par le fournisseur",
        message=(
            f"La commande {event.id_commande} a été validée : "
            f"{event.nb_lignes_validées} ligne(s) entrée(s) en stock."
        ),
    )
