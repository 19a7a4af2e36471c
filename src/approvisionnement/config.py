"""
Configuration lue dans l'environnement.

Le secret JWT n'a pas de valeur par défaut : son absence empêche
le démarrage de l'application.
"""

from __future__ import annotations

import logging
import os
from typing import Any


class ConfigurationManquante(RuntimeError):
    """Levée au démarrage quand une variable obligatoire est absente."""
    pass


def get_database_uri() -> str:
    return os.environ.get("DATABASE_URI", "sqlite:///approvisionnement.db")


def get_db_timeout() -> float:
    """Délai maximal (secondes) d'attente d'un verrou ou d'une requête."""
    return float(os.environ.get("DB_TIMEOUT_SECONDS", "5"))


def get_engine_options(uri: str | None = None) -> dict[str, Any]:
    """Options create_engine bornant la durée des transactions selon le SGBD."""
    uri = uri or get_database_uri()
    timeout = get_db_timeout()
    if uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout}}
    if uri.startswith("postgresql"):
        return {
            "connect_args": {"options": f"-c statement_timeout={int(timeout * 1000)}"},
            "pool_pre_ping": True,
        }
    return {}


def get_jwt_secret() -> str:
    secret = os.environ.get("JWT_SECRET")
    if not secret:
        raise ConfigurationManquante(
            "La variable d'environnement JWT_SECRET est obligatoire"
        )
    return secret


def get_jwt_algorithm() -> str:
    return os.environ.get("JWT_ALGORITHM", "HS256")


def get_smtp_config() -> dict[str, Any]:
    return {
        "smtp_host": os.environ.get("SMTP_HOST", "localhost"),
        "smtp_port": int(os.environ.get("SMTP_PORT", "587")),
        "expéditeur": os.environ.get("NOTIFICATIONS_FROM", "commandes@example.com"),
    }


def configurer_logs() -> None:
    niveau = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, niveau, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s : %(message)s",
    )
