"""
Résolution du panier: identifiants clients -> lignes au prix du catalogue.
Tout ou rien: la première ligne invalide rejette le panier entier.
"""
import logging
from typing import Any, Dict, List, Optional, Protocol, Iterable, Mapping

from fastapi import HTTPException

from checkout_backend.config import CART_MAX_QTY
from .models import CartLine, CatalogEntry, ResolvedLineItem, PRICE_REF_PREFIX
from .normalize import normalize_identifier
from .stock import StockStore

logger = logging.getLogger(__name__)

EMPTY_CART = "EMPTY_CART"
UNRESOLVED_ITEM = "UNRESOLVED_ITEM"
OUT_OF_STOCK = "OUT_OF_STOCK"

class Catalog(Protocol):
    aliases: Dict[str, str]
    def lookup(self, keys: Iterable[str]) -> Dict[str, CatalogEntry]: ...

# module checkout_backend.catalog.resolver
class CartError(HTTPException):
    """
    Erreur d'entrée client, sérialisée en code machine dans detail:
    "EMPTY_CART", "UNRESOLVED_ITEM:<key>", "OUT_OF_STOCK:<key>".
    """

    def __init__(self, code: str, key: Optional[str] = None, status_code: int = 400):
        self.code = code
        self.key = key
        detail = f"{code}:{key}" if key is not None else code
        super().__init__(status_code=status_code, detail=detail)

def clamp_quantity(raw: Any, max_qty: int = CART_MAX_QTY) -> int:
    """Quantité manquante ou illisible -> 1, puis bornée à [1, max_qty]."""
    try:
        qty = int(float(raw))
    except (TypeError, ValueError, OverflowError):
        qty = 0
    if qty <= 0:
        qty = 1
    return min(qty, max_qty)

def parse_cart(raw_cart: Any) -> List[CartLine]:
    """
    Lit un panier brut [{identifier|productId|id, quantity}, ...].
    Les entrées qui ne sont pas des objets gardent un identifiant vide (rejeté au lookup).
    """
    if not isinstance(raw_cart, list) or not raw_cart:
        raise CartError(EMPTY_CART)
    lines: List[CartLine] = []
    for it in raw_cart:
        it = it if isinstance(it, Mapping) else {}
        identifier = it.get("identifier") or it.get("productId") or it.get("id") or ""
        lines.append(CartLine(identifier=str(identifier), quantity=clamp_quantity(it.get("quantity"))))
    return lines

def aggregate_lines(lines: List[CartLine], aliases: Optional[Mapping[str, str]] = None, max_qty: int = CART_MAX_QTY) -> Dict[str, int]:
    """
    Agrège par clé canonique (ordre de première apparition), quantités sommées puis bornées.
    Une même clé présente deux fois donne donc une seule ligne.
    """
    quantities: Dict[str, int] = {}
    for line in lines:
        key = normalize_identifier(line.identifier, aliases)
        quantities[key] = quantities.get(key, 0) + line.quantity
    return {k: min(q, max_qty) for k, q in quantities.items()}

def enforce_stock(entry: CatalogEntry, stock_store: Optional[StockStore]) -> None:
    """
    Refuse une entrée dont le stock suivi est <= 0.
    Pas de réservation: deux paniers peuvent passer pour la dernière unité,
    la décrémentation n'a lieu qu'au paiement confirmé.
    """
    stock = stock_store.get(entry.canonical_key) if stock_store is not None else entry.available_stock
    if stock is not None and stock <= 0:
        raise CartError(OUT_OF_STOCK, entry.canonical_key, status_code=409)

def build_line_items(raw_cart: Any, catalog: Catalog, stock_store: Optional[StockStore] = None) -> List[ResolvedLineItem]:
    """
    Construit les lignes résolues d'un panier.
    - Références de prix directes ("price_..."): pas de lookup, quantité client bornée.
    - Autres clés: un seul lookup groupé (clés dédupliquées), prix du catalogue uniquement.
    - Échec rapide sur la première clé inconnue ou en rupture, en la nommant.
    """
    lines = parse_cart(raw_cart)
    quantities = aggregate_lines(lines, catalog.aliases)
    keys = [k for k in quantities if not k.startswith(PRICE_REF_PREFIX)]
    entries = catalog.lookup(keys) if keys else {}

    resolved: List[ResolvedLineItem] = []
    for key, qty in quantities.items():
        if key.startswith(PRICE_REF_PREFIX):
            resolved.append(ResolvedLineItem(canonical_key=key, quantity=qty))
            continue
        entry = entries.get(key)
        if entry is None:
            logger.info("catalog.resolve unresolved key=%s", key)
            raise CartError(UNRESOLVED_ITEM, key)
        enforce_stock(entry, stock_store)
        resolved.append(ResolvedLineItem(
            canonical_key=entry.canonical_key,
            quantity=qty,
            unit_amount=entry.unit_amount,
            currency=entry.currency,
            display_name=entry.display_name,
        ))
    return resolved
