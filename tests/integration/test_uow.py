"""
Tests d'intégration du Unit of Work.

Vérifient que le UoW commit ou annule en bloc, et qu'il traduit
les erreurs de la base en exceptions métier.
"""

from decimal import Decimal

import pytest
from sqlalchemy import text

from approvisionnement.domain import model
from approvisionnement.domain.exceptions import ConflitÉtat, ViolationUnicité
from approvisionnement.domain.model import ArticleDemandé, StatutCommande, StatutLigne
from approvisionnement.service_layer import unit_of_work


def insérer_commande(session_factory, ids, *quantités, assignée=True) -> tuple[str, list[str]]:
    commande, lignes = model.nouvelle_commande(
        id_projet=ids["projet"],
        nom="Fondations",
        montant_total=Decimal("800"),
        articles=[
            ArticleDemandé(ids[produit], quantité)
            for produit, quantité in zip(("ciment", "sable"), quantités)
        ],
    )
    if assignée:
        commande.assigner_fournisseur(ids["fournisseur"])
    session = session_factory()
    session.add(commande)
    session.add_all(lignes)
    session.commit()
    résultat = commande.id, [ligne.id for ligne in lignes]
    session.close()
    return résultat


def statut_commande(session, id_commande) -> str:
    return session.execute(
        text("SELECT statut_cmd FROM commandes WHERE id = :id"), {"id": id_commande}
    ).scalar_one()


class TestSqlAlchemyUnitOfWork:
    def test_commit_enregistre_les_modifications(self, sqlite_session_factory, référentiel):
        id_commande, _ = insérer_commande(
            sqlite_session_factory, référentiel, 3, assignée=False
        )
        uow = unit_of_work.SqlAlchemyUnitOfWork(sqlite_session_factory)

        with uow:
            commande = uow.commandes.get(id_commande)
            commande.assigner_fournisseur(référentiel["fournisseur"])
            uow.commit()

        session = sqlite_session_factory()
        assert statut_commande(session, id_commande) == "EnAttenteValidationFournisseur"

    def test_rollback_sans_commit(self, sqlite_session_factory, référentiel):
        id_commande, _ = insérer_commande(
            sqlite_session_factory, référentiel, 3, assignée=False
        )
        uow = unit_of_work.SqlAlchemyUnitOfWork(sqlite_session_factory)

        with uow:
            uow.commandes.get(id_commande).assigner_fournisseur(référentiel["fournisseur"])

        session = sqlite_session_factory()
        assert statut_commande(session, id_commande) == "EnAttenteAssignation"

    def test_rollback_sur_exception(self, sqlite_session_factory, référentiel):
        id_commande, _ = insérer_commande(
            sqlite_session_factory, référentiel, 3, assignée=False
        )
        uow = unit_of_work.SqlAlchemyUnitOfWork(sqlite_session_factory)

        class ErreurDuHandler(Exception):
            pass

        with pytest.raises(ErreurDuHandler):
            with uow:
                uow.commandes.get(id_commande).assigner_fournisseur(référentiel["fournisseur"])
                raise ErreurDuHandler()

        session = sqlite_session_factory()
        assert statut_commande(session, id_commande) == "EnAttenteAssignation"

    def test_stock_en_double_annule_toute_la_validation(
        self, sqlite_session_factory, référentiel
    ):
        """Le conflit détecté au commit annule statuts et stock ensemble."""
        id_commande, ids_lignes = insérer_commande(sqlite_session_factory, référentiel, 10, 5)
        uow = unit_of_work.SqlAlchemyUnitOfWork(sqlite_session_factory)

        with pytest.raises(ViolationUnicité):
            with uow:
                commande = uow.commandes.get(id_commande)
                lignes = uow.commandes.lignes_de_commande(id_commande)
                for entrée in commande.valider(lignes, model.maintenant()):
                    uow.stocks.add(entrée)
                # Une requête concurrente aurait déjà créé ce stock
                uow.stocks.add(model.EntréeStock.depuis_ligne(lignes[0], model.maintenant()))
                uow.commit()

        with uow:
            assert uow.commandes.get(id_commande).statut == StatutCommande.EN_ATTENTE_VALIDATION
            lignes = uow.commandes.lignes_de_commande(id_commande)
            assert all(l.statut == StatutLigne.SOUMIS for l in lignes)
            assert uow.stocks.lignes_en_stock(ids_lignes) == set()

    def test_modification_concurrente_détectée(self, sqlite_session_factory, référentiel):
        id_commande, _ = insérer_commande(
            sqlite_session_factory, référentiel, 3, assignée=False
        )
        uow = unit_of_work.SqlAlchemyUnitOfWork(sqlite_session_factory)

        with pytest.raises(ConflitÉtat):
            with uow:
                commande = uow.commandes.get(id_commande)
                autre = sqlite_session_factory()
                autre.execute(
                    text("UPDATE commandes SET numero_version = 1 WHERE id = :id"),
                    {"id": id_commande},
                )
                autre.commit()
                autre.close()
                commande.assigner_fournisseur(référentiel["fournisseur"])
                uow.commit()

    def test_les_événements_sont_collectés(self, sqlite_session_factory, référentiel):
        id_commande, _ = insérer_commande(
            sqlite_session_factory, référentiel, 3, assignée=False
        )
        uow = unit_of_work.SqlAlchemyUnitOfWork(sqlite_session_factory)

        with uow:
            uow.commandes.get(id_commande).assigner_fournisseur(référentiel["fournisseur"])
            uow.commit()

        événements = list(uow.collect_new_events())
        assert [type(e).__name__ for e in événements] == ["FournisseurAssigné"]
