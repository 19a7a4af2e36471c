"""
Schémas des corps de requête JSON.

Les noms de champs sont ceux de l'API (camelCase) ; la conversion
vers les commands du domaine se fait dans flask_app.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ArticleCommande(BaseModel):
    productTypeId: UUID
    quantiteCommandee: int = Field(gt=0)
    prixUnitaire: Optional[Decimal] = Field(default=None, ge=0)


class RequeteCreerCommande(BaseModel):
    name: str = Field(min_length=1)
    type: Optional[str] = None
    dateCmd: Optional[datetime] = None
    montantTotal: Decimal = Field(ge=0)
    projetId: UUID
    items: list[ArticleCommande] = Field(min_length=1)


class RequeteAssignerFournisseur(BaseModel):
    supplierId: UUID


class RequeteStatutLigne(BaseModel):
    statutLigne: Literal["ValidéFournisseur", "Annulé"]
