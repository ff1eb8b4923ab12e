"""
Types du catalogue: lignes de panier (client), entrées catalogue (serveur),
lignes résolues (seule forme autorisée vers la création de session Stripe).
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

PRICE_REF_PREFIX = "price_"

# module checkout_backend.catalog.models
@dataclass(frozen=True)
class CartLine:
    identifier: str
    quantity: int

@dataclass(frozen=True)
class CatalogEntry:
    """
    Entrée catalogue côté serveur (source de vérité pour le prix).
    - unit_amount: montant unitaire en unités mineures (pence, centimes), >= 0
    - available_stock: None = stock non suivi (illimité)
    """
    canonical_key: str
    display_name: str
    unit_amount: int
    currency: str
    available_stock: Optional[int] = None

    def __post_init__(self):
        if self.unit_amount < 0:
            raise ValueError(f"unit_amount négatif pour {self.canonical_key}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

@dataclass(frozen=True)
class ResolvedLineItem:
    canonical_key: str
    quantity: int
    unit_amount: Optional[int] = None
    currency: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def is_price_ref(self) -> bool:
        return self.canonical_key.startswith(PRICE_REF_PREFIX)

    def to_stripe(self) -> Dict[str, Any]:
        """
        Convertit la ligne au format line_items de Stripe Checkout.
        - Référence de prix directe: {"price": "<price_id>", "quantity": n}
        - Sinon price_data construit uniquement depuis le catalogue.
        """
        if self.is_price_ref:
            return {"price": self.canonical_key, "quantity": self.quantity}
        return {
            "quantity": self.quantity,
            "price_data": {
                "currency": self.currency,
                "unit_amount": self.unit_amount,
                "product_data": {"name": self.display_name or self.canonical_key},
            },
        }
