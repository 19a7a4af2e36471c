"""
Mapping ORM avec SQLAlchemy (classical mapping).

On définit les tables séparément, puis on mappe les classes
du domaine sur ces tables. Le modèle de domaine reste ainsi
ignorant de la persistance.

Les noms de tables et de colonnes SQL restent en ASCII, le mapping
traduit vers les attributs français du domaine.

Les contraintes d'unicité sont le dernier rempart de l'intégrité :
- une seule ligne par (commande, type de produit) ;
- une seule entrée de stock par ligne de commande.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import registry, relationship

from approvisionnement.domain import model

metadata = MetaData()
mapper_registry = registry(metadata=metadata)


def _enum(enum_class, nom: str) -> Enum:
    """Enum stocké par valeur ("Soumis", "ValidéFournisseur"...), pas par nom."""
    return Enum(
        enum_class,
        name=nom,
        native_enum=False,
        length=40,
        values_callable=lambda membres: [m.value for m in membres],
    )


# --- Référentiel ---

users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("role", _enum(model.Rôle, "role_utilisateur"), nullable=False),
    Column("contact", String(255), nullable=True),
    Column("phone", String(50), nullable=True),
    Column("address", String(500), nullable=True),
)

projects = Table(
    "projects",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("chef_projet_id", String(36), ForeignKey("users.id"), nullable=False),
)

product_types = Table(
    "product_types",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("unit", String(50), nullable=False),
    Column("category", String(255), nullable=True),
)

# --- Commandes ---

commandes = Table(
    "commandes",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("type", String(255), nullable=True),
    Column(
        "statut_cmd",
        _enum(model.StatutCommande, "statut_commande"),
        nullable=False,
        default=model.StatutCommande.EN_ATTENTE_ASSIGNATION,
    ),
    Column("date_cmd", DateTime(timezone=True), nullable=False),
    Column("montant_total", Numeric(14, 2), nullable=False),
    Column("fournisseur_id", String(36), ForeignKey("users.id"), nullable=True),
    Column("projet_id", String(36), ForeignKey("projects.id"), nullable=False),
    Column("numero_version", Integer, nullable=False, server_default="0"),
    CheckConstraint("montant_total >= 0", name="ck_commandes_montant_positif"),
    Index("ix_commandes_projet_id", "projet_id"),
    Index("ix_commandes_fournisseur_id", "fournisseur_id"),
    Index("ix_commandes_statut_cmd", "statut_cmd"),
)

command_items = Table(
    "command_items",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("commande_id", String(36), ForeignKey("commandes.id"), nullable=False),
    Column("product_type_id", String(36), ForeignKey("product_types.id"), nullable=False),
    Column("quantite_commandee", Integer, nullable=False),
    Column("prix_unitaire", Numeric(14, 2), nullable=True),
    Column(
        "statut_ligne",
        _enum(model.StatutLigne, "statut_ligne"),
        nullable=False,
        default=model.StatutLigne.SOUMIS,
    ),
    UniqueConstraint(
        "commande_id", "product_type_id", name="uq_command_items_commande_produit"
    ),
    CheckConstraint("quantite_commandee >= 1", name="ck_command_items_quantite"),
    Index("ix_command_items_statut_ligne", "statut_ligne"),
)

stock = Table(
    "stock",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("product_type_id", String(36), ForeignKey("product_types.id"), nullable=False),
    Column(
        "command_item_id",
        String(36),
        ForeignKey("command_items.id"),
        nullable=False,
        unique=True,
    ),
    Column("quantite_disponible", Integer, nullable=False),
    Column("date_entree_stock", DateTime(timezone=True), nullable=False),
    CheckConstraint("quantite_disponible >= 0", name="ck_stock_quantite_positive"),
    Index("ix_stock_product_type_id", "product_type_id"),
)


def start_mappers() -> None:
    """
    Configure le mapping entre les classes du domaine et les tables SQL.

    La Commande ne référence pas ses lignes : ce sont les lignes qui
    portent id_commande, et le repository les charge par une requête
    explicite. Les relations privées _commande et _ligne ne servent
    qu'à ordonner les écritures (parent inséré avant l'enfant,
    enfant supprimé avant le parent).
    """
    mapper_registry.map_imperatively(
        model.Utilisateur,
        users,
        properties={
            "nom_utilisateur": users.c.username,
            "rôle": users.c.role,
            "_contact": users.c.contact,
            "_téléphone": users.c.phone,
            "_adresse": users.c.address,
        },
    )
    mapper_registry.map_imperatively(
        model.Projet,
        projects,
        properties={
            "nom": projects.c.name,
            "id_chef_projet": projects.c.chef_projet_id,
        },
    )
    mapper_registry.map_imperatively(
        model.TypeProduit,
        product_types,
        properties={
            "nom": product_types.c.name,
            "unité": product_types.c.unit,
            "catégorie": product_types.c.category,
        },
    )
    commandes_mapper = mapper_registry.map_imperatively(
        model.Commande,
        commandes,
        properties={
            "nom": commandes.c.name,
            "statut": commandes.c.statut_cmd,
            "date_commande": commandes.c.date_cmd,
            "montant_total": commandes.c.montant_total,
            "id_fournisseur": commandes.c.fournisseur_id,
            "id_projet": commandes.c.projet_id,
            "numéro_version": commandes.c.numero_version,
        },
        version_id_col=commandes.c.numero_version,
        version_id_generator=False,
    )
    lignes_mapper = mapper_registry.map_imperatively(
        model.LigneDeCommande,
        command_items,
        properties={
            "id_commande": command_items.c.commande_id,
            "id_type_produit": command_items.c.product_type_id,
            "quantité_commandée": command_items.c.quantite_commandee,
            "prix_unitaire": command_items.c.prix_unitaire,
            "statut": command_items.c.statut_ligne,
            "_commande": relationship(commandes_mapper),
        },
    )
    mapper_registry.map_imperatively(
        model.EntréeStock,
        stock,
        properties={
            "id_type_produit": stock.c.product_type_id,
            "id_ligne": stock.c.command_item_id,
            "quantité_disponible": stock.c.quantite_disponible,
            "date_entrée": stock.c.date_entree_stock,
            "_ligne": relationship(lignes_mapper),
        },
    )


@event.listens_for(model.Commande, "load")
def receive_load(commande: model.Commande, _: object) -> None:
    """Initialise la liste d'événements quand une Commande est chargée depuis la BDD."""
    commande.événements = []
