"""
Vérification des jetons JWT.

L'émission des jetons relève du service d'authentification ; ici on
vérifie seulement la signature et on extrait l'acteur {id, role}.
"""

from __future__ import annotations

import functools
import logging
from typing import Callable

import jwt
from flask import current_app, g, jsonify, request

from approvisionnement.domain.model import Acteur, Rôle

logger = logging.getLogger(__name__)


class JetonInvalide(Exception):
    pass


def décoder_jeton(jeton: str, secret: str, algorithme: str = "HS256") -> Acteur:
    """Vérifie le jeton et retourne l'acteur qu'il désigne."""
    try:
        payload = jwt.decode(jeton, secret, algorithms=[algorithme])
    except jwt.PyJWTError as e:
        raise JetonInvalide(str(e)) from e
    try:
        return Acteur(id=str(payload["id"]), rôle=Rôle(payload["role"]))
    except (KeyError, ValueError) as e:
        raise JetonInvalide(f"Contenu du jeton invalide : {e}") from e


def authentification_requise(vue: Callable) -> Callable:
    """Décorateur : place l'acteur du jeton Bearer dans flask.g ou répond 401."""

    @functools.wraps(vue)
    def wrapper(*args, **kwargs):
        entête = request.headers.get("Authorization", "")
        schéma, _, jeton = entête.partition(" ")
        if schéma.lower() != "bearer" or not jeton:
            return jsonify({"success": False, "message": "Accès non autorisé"}), 401
        try:
            g.acteur = décoder_jeton(
                jeton.strip(),
                current_app.config["JWT_SECRET"],
                current_app.config["JWT_ALGORITHM"],
            )
        except JetonInvalide as e:
            logger.info("Jeton refusé : %s", e)
            return jsonify({"success": False, "message": "Token invalide ou expiré"}), 401
        return vue(*args, **kwargs)

    return wrapper
