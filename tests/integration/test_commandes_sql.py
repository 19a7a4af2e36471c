"""
Tests d'intégration des command handlers sur SQLAlchemy.

Chaque handler passe par le message bus et un SqlAlchemyUnitOfWork
réel : la session est fermée à la sortie du `with uow`, ce que les
fakes ne reproduisent pas.
"""

from decimal import Decimal

from sqlalchemy import text

from approvisionnement.adapters.notifications import AbstractNotifications
from approvisionnement.domain import commands
from approvisionnement.domain.model import Acteur, ArticleDemandé, Rôle
from approvisionnement.service_layer import bootstrap


class FakeNotifications(AbstractNotifications):
    def __init__(self):
        self.envoyés = []

    def send(self, destination: str, sujet: str, message: str) -> None:
        self.envoyés.append(destination)


def fabrique(session_factory, notifications=None):
    return bootstrap.fabrique_bus(
        start_orm=False,
        session_factory=session_factory,
        notifications_adapter=notifications or FakeNotifications(),
    )


def chef(ids):
    return Acteur(ids["chef"], Rôle.CHEF_PROJET)


def fournisseur(ids):
    return Acteur(ids["fournisseur"], Rôle.FOURNISSEUR)


def créer(bus, ids, nom="Fondations") -> str:
    return bus.handle(
        commands.CréerCommande(
            acteur=chef(ids),
            id_projet=ids["projet"],
            nom=nom,
            montant_total=Decimal("450.00"),
            articles=(
                ArticleDemandé(ids["ciment"], 10, Decimal("8.50")),
                ArticleDemandé(ids["sable"], 5),
            ),
        )
    )[0]


def statut_commande(session_factory, id_commande):
    session = session_factory()
    try:
        return session.execute(
            text("SELECT statut_cmd FROM commandes WHERE id = :id"), {"id": id_commande}
        ).scalar_one_or_none()
    finally:
        session.close()


def nb_stock(session_factory) -> int:
    session = session_factory()
    try:
        return session.execute(text("SELECT count(*) FROM stock")).scalar_one()
    finally:
        session.close()


def ids_lignes(session_factory, id_commande) -> list[str]:
    session = session_factory()
    try:
        return sorted(
            session.execute(
                text("SELECT id FROM command_items WHERE commande_id = :id"),
                {"id": id_commande},
            ).scalars()
        )
    finally:
        session.close()


class TestHandlersSurSqlAlchemy:
    def test_créer_commande(self, sqlite_session_factory, référentiel):
        bus = fabrique(sqlite_session_factory)()

        id_commande = créer(bus, référentiel)

        assert statut_commande(sqlite_session_factory, id_commande) == "EnAttenteAssignation"
        assert len(ids_lignes(sqlite_session_factory, id_commande)) == 2

    def test_assigner_fournisseur(self, sqlite_session_factory, référentiel):
        notifications = FakeNotifications()
        bus = fabrique(sqlite_session_factory, notifications)()
        id_commande = créer(bus, référentiel)

        résultats = bus.handle(
            commands.AssignerFournisseur(chef(référentiel), id_commande, référentiel["fournisseur"])
        )

        assert résultats == [id_commande]
        assert statut_commande(sqlite_session_factory, id_commande) == "EnAttenteValidationFournisseur"
        assert notifications.envoyés == ["contact@beton.example.com"]

    def test_valider_commande(self, sqlite_session_factory, référentiel):
        bus = fabrique(sqlite_session_factory)()
        id_commande = créer(bus, référentiel)
        bus.handle(
            commands.AssignerFournisseur(chef(référentiel), id_commande, référentiel["fournisseur"])
        )

        résultats = bus.handle(commands.ValiderCommande(fournisseur(référentiel), id_commande))

        assert résultats == [id_commande]
        assert statut_commande(sqlite_session_factory, id_commande) == "ValideeFournisseur"
        assert nb_stock(sqlite_session_factory) == 2

    def test_modifier_statut_ligne(self, sqlite_session_factory, référentiel):
        bus = fabrique(sqlite_session_factory)()
        id_commande = créer(bus, référentiel)
        bus.handle(
            commands.AssignerFournisseur(chef(référentiel), id_commande, référentiel["fournisseur"])
        )
        id_ligne = ids_lignes(sqlite_session_factory, id_commande)[0]

        résultats = bus.handle(
            commands.ModifierStatutLigne(fournisseur(référentiel), id_ligne, "ValidéFournisseur")
        )

        assert résultats == [id_ligne]
        assert nb_stock(sqlite_session_factory) == 1

    def test_supprimer_commande(self, sqlite_session_factory, référentiel):
        bus = fabrique(sqlite_session_factory)()
        id_commande = créer(bus, référentiel)
        admin = Acteur(référentiel["admin"], Rôle.ADMIN)

        bus.handle(commands.SupprimerCommande(admin, id_commande))

        assert statut_commande(sqlite_session_factory, id_commande) is None
        assert ids_lignes(sqlite_session_factory, id_commande) == []


class TestRequêtesEntrelacées:
    def test_chaque_bus_a_sa_propre_session(self, sqlite_session_factory, référentiel):
        nouveau_bus = fabrique(sqlite_session_factory)
        bus_a, bus_b = nouveau_bus(), nouveau_bus()
        assert bus_a.uow is not bus_b.uow

        id_a = créer(bus_a, référentiel, "Commande A")
        id_b = créer(bus_b, référentiel, "Commande B")

        # La requête B s'exécute entièrement pendant la transaction de A
        with bus_a.uow:
            commande_a = bus_a.uow.commandes.get(id_a)
            commande_a.assigner_fournisseur(référentiel["fournisseur"])

            résultats_b = bus_b.handle(
                commands.AssignerFournisseur(chef(référentiel), id_b, référentiel["fournisseur"])
            )

            bus_a.uow.commit()

        assert résultats_b == [id_b]
        assert statut_commande(sqlite_session_factory, id_a) == "EnAttenteValidationFournisseur"
        assert statut_commande(sqlite_session_factory, id_b) == "EnAttenteValidationFournisseur"
        événements_a = list(bus_a.uow.collect_new_events())
        assert [e.id_commande for e in événements_a] == [id_a]
