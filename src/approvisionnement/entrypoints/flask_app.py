"""
Point d'entrée Flask.

L'API Flask est un thin adapter : elle se contente de
convertir les requêtes HTTP en commands, les envoie au
message bus, et convertit les résultats en réponses HTTP.

Toutes les réponses suivent l'enveloppe
    { "success": bool, "data"?: ..., "message"?: ..., "details"?: ... }

L'application est construite par create_app(), qui refuse de
démarrer sans JWT_SECRET.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional
from uuid import UUID

import pydantic
from flask import Blueprint, Flask, current_app, g, jsonify, request
from werkzeug.exceptions import HTTPException

from approvisionnement import config
from approvisionnement.domain import commands
from approvisionnement.domain.exceptions import (
    AccèsRefusé,
    ConflitÉtat,
    DonnéesInvalides,
    ErreurMétier,
    ErreurTransaction,
    IntégritéDonnées,
    Introuvable,
)
from approvisionnement.domain.model import ArticleDemandé
from approvisionnement.entrypoints import schemas
from approvisionnement.entrypoints.auth import authentification_requise
from approvisionnement.service_layer import bootstrap, messagebus
from approvisionnement.views import views

logger = logging.getLogger(__name__)

STATUTS_HTTP: list[tuple[type[ErreurMétier], int]] = [
    (DonnéesInvalides, 400),
    (AccèsRefusé, 403),
    (Introuvable, 404),
    (ConflitÉtat, 409),
    (IntégritéDonnées, 500),
    (ErreurTransaction, 503),
]

api = Blueprint("api", __name__, url_prefix="/api")


def create_app(
    nouveau_bus: Optional[Callable[[], messagebus.MessageBus]] = None,
) -> Flask:
    """
    Construit l'application.

    `nouveau_bus` fabrique un MessageBus par requête (voir
    bootstrap.fabrique_bus) ; les tests y passent leur propre fabrique.
    """
    config.configurer_logs()
    app = Flask(__name__)
    app.config["JWT_SECRET"] = config.get_jwt_secret()
    app.config["JWT_ALGORITHM"] = config.get_jwt_algorithm()
    app.extensions["nouveau_bus"] = nouveau_bus or bootstrap.fabrique_bus()
    app.register_blueprint(api)
    _enregistrer_gestionnaires_erreurs(app)
    return app


def _bus() -> messagebus.MessageBus:
    """Bus de la requête courante, créé au premier appel."""
    if "bus" not in g:
        g.bus = current_app.extensions["nouveau_bus"]()
    return g.bus


def _succès(data: Any = None, status: int = 200, message: Optional[str] = None):
    corps: dict[str, Any] = {"success": True}
    if data is not None:
        corps["data"] = data
    if message is not None:
        corps["message"] = message
    return jsonify(corps), status


def _échec(message: str, status: int, code: Optional[str] = None, details: Any = None):
    corps: dict[str, Any] = {"success": False, "message": message}
    if code:
        corps["code"] = code
    if details:
        corps["details"] = details
    return jsonify(corps), status


def _identifiant(valeur: str, champ: str) -> str:
    try:
        return str(UUID(valeur))
    except ValueError:
        raise DonnéesInvalides(f"Format d'identifiant invalide : {valeur}", {champ: valeur}) from None


def _corps(schéma: type[pydantic.BaseModel]) -> Any:
    data = request.get_json(silent=True)
    if data is None:
        raise DonnéesInvalides("Corps JSON requis")
    return schéma.model_validate(data)


def _enregistrer_gestionnaires_erreurs(app: Flask) -> None:
    @app.errorhandler(ErreurMétier)
    def erreur_métier(e: ErreurMétier):
        status = next((s for classe, s in STATUTS_HTTP if isinstance(e, classe)), 500)
        if status >= 500:
            logger.error("%s : %s", type(e).__name__, e.message)
        return _échec(e.message, status, e.code, e.details)

    @app.errorhandler(pydantic.ValidationError)
    def erreur_validation(e: pydantic.ValidationError):
        details = {
            ".".join(str(partie) for partie in erreur["loc"]): erreur["msg"]
            for erreur in e.errors()
        }
        return _échec("Données invalides", 400, DonnéesInvalides.code, details)

    @app.errorhandler(HTTPException)
    def erreur_http(e: HTTPException):
        return _échec(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def erreur_inattendue(e: Exception):
        logger.exception("Erreur inattendue")
        return _échec("Erreur serveur", 500)


# --- Écritures (commands) ---


@api.route("/commandes", methods=["POST"])
@authentification_requise
def créer_commande_endpoint():
    """
    POST /api/commandes
    Body JSON : { name, type?, dateCmd?, montantTotal, projetId,
                  items: [{ productTypeId, quantiteCommandee, prixUnitaire? }] }
    """
    corps = _corps(schemas.RequeteCreerCommande)
    cmd = commands.CréerCommande(
        acteur=g.acteur,
        id_projet=str(corps.projetId),
        nom=corps.name,
        montant_total=corps.montantTotal,
        articles=tuple(
            ArticleDemandé(
                id_type_produit=str(item.productTypeId),
                quantité=item.quantiteCommandee,
                prix_unitaire=item.prixUnitaire,
            )
            for item in corps.items
        ),
        type=corps.type,
        date_commande=corps.dateCmd,
    )
    id_commande = _bus().handle(cmd).pop(0)
    return _succès(views.commande_avec_lignes(id_commande, _bus().uow), 201)


@api.route("/commandes/<id_commande>/assign-supplier", methods=["PATCH"])
@authentification_requise
def assigner_fournisseur_endpoint(id_commande: str):
    """PATCH /api/commandes/<id>/assign-supplier  Body JSON : { supplierId }"""
    id_commande = _identifiant(id_commande, "id")
    corps = _corps(schemas.RequeteAssignerFournisseur)
    _bus().handle(
        commands.AssignerFournisseur(
            acteur=g.acteur,
            id_commande=id_commande,
            id_fournisseur=str(corps.supplierId),
        )
    )
    return _succès(views.commande_avec_lignes(id_commande, _bus().uow))


@api.route("/commandes/<id_commande>/validate", methods=["POST"])
@authentification_requise
def valider_commande_endpoint(id_commande: str):
    """
    POST /api/commandes/<id>/validate

    Valide la commande, ses lignes soumises, et crée le stock correspondant.
    Retourne la commande avec ses lignes et leurs types de produits.
    """
    id_commande = _identifiant(id_commande, "id")
    _bus().handle(commands.ValiderCommande(acteur=g.acteur, id_commande=id_commande))
    return _succès(views.commande_avec_lignes(id_commande, _bus().uow))


@api.route("/command-items/<id_ligne>/status", methods=["PATCH"])
@authentification_requise
def modifier_statut_ligne_endpoint(id_ligne: str):
    """PATCH /api/command-items/<id>/status  Body JSON : { statutLigne }"""
    id_ligne = _identifiant(id_ligne, "id")
    corps = _corps(schemas.RequeteStatutLigne)
    _bus().handle(
        commands.ModifierStatutLigne(
            acteur=g.acteur, id_ligne=id_ligne, statut=corps.statutLigne
        )
    )
    return _succès(views.ligne_de_commande(id_ligne, _bus().uow))


@api.route("/commandes/<id_commande>", methods=["DELETE"])
@authentification_requise
def supprimer_commande_endpoint(id_commande: str):
    id_commande = _identifiant(id_commande, "id")
    _bus().handle(commands.SupprimerCommande(acteur=g.acteur, id_commande=id_commande))
    return _succès(message="Commande supprimée")


# --- Lectures (views) ---


@api.route("/commandes", methods=["GET"])
@authentification_requise
def lister_commandes_endpoint():
    return _succès(views.lister_commandes(g.acteur, _bus().uow))


@api.route("/commandes/my", methods=["GET"])
@authentification_requise
def mes_commandes_endpoint():
    return _succès(views.mes_commandes(g.acteur, _bus().uow))


@api.route("/commandes/projet/<id_projet>", methods=["GET"])
@authentification_requise
def commandes_du_projet_endpoint(id_projet: str):
    id_projet = _identifiant(id_projet, "projectId")
    return _succès(views.commandes_du_projet(id_projet, g.acteur, _bus().uow))


@api.route("/commandes/<id_commande>", methods=["GET"])
@authentification_requise
def commande_endpoint(id_commande: str):
    id_commande = _identifiant(id_commande, "id")
    return _succès(views.commande_détaillée(id_commande, g.acteur, _bus().uow))


@api.route("/product-types", methods=["GET"])
@authentification_requise
def types_produits_endpoint():
    return _succès(views.catalogue_types_produits(_bus().uow))


@api.route("/stock", methods=["GET"])
@authentification_requise
def stock_endpoint():
    return _succès(views.registre_stock(_bus().uow))
