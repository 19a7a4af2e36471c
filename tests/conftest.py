"""
Configuration partagée pour les tests.

Le mapping ORM est démarré une seule fois pour toute la session de tests.
Cela permet aux tests d'intégration et e2e d'utiliser SQLAlchemy
sans interférer avec les tests unitaires.

Les tests d'intégration et e2e partagent une base SQLite dans un
fichier temporaire : plusieurs sessions y voient les mêmes données.
"""

import uuid

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from approvisionnement.adapters import orm
from approvisionnement.domain import model
from approvisionnement.domain.model import Rôle


@pytest.fixture(scope="session", autouse=True)
def mappers():
    """Démarre le mapping ORM une fois pour toute la session."""
    orm.start_mappers()


@pytest.fixture
def sqlite_session_factory(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'approvisionnement.db'}")
    orm.metadata.create_all(engine)
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture
def référentiel(sqlite_session_factory):
    """
    Insère utilisateurs, projet et catalogue de base.

    Retourne un dict des identifiants : chef, autre_chef, fournisseur,
    autre_fournisseur, admin, projet, ciment, sable.
    """
    ids = {
        nom: str(uuid.uuid4())
        for nom in (
            "chef", "autre_chef", "fournisseur", "autre_fournisseur",
            "admin", "projet", "ciment", "sable",
        )
    }
    fiche = model.FicheFournisseur("Mme Martin", "0102030405", "12 quai des Docks")
    session = sqlite_session_factory()
    session.add_all([
        model.Utilisateur(ids["chef"], "chef", "chef@example.com", Rôle.CHEF_PROJET),
        model.Utilisateur(ids["autre_chef"], "chef2", "chef2@example.com", Rôle.CHEF_PROJET),
        model.Utilisateur(ids["admin"], "admin", "admin@example.com", Rôle.ADMIN),
        model.Utilisateur(
            ids["fournisseur"], "beton-sa", "contact@beton.example.com", Rôle.FOURNISSEUR, fiche
        ),
        model.Utilisateur(
            ids["autre_fournisseur"], "sablerie", "ventes@sable.example.com", Rôle.FOURNISSEUR, fiche
        ),
        model.TypeProduit(ids["ciment"], "Ciment", "sac", "Gros oeuvre"),
        model.TypeProduit(ids["sable"], "Sable", "tonne", "Gros oeuvre"),
    ])
    session.flush()
    session.add(model.Projet(ids["projet"], "Chantier nord", ids["chef"]))
    session.commit()
    session.close()
    return ids
