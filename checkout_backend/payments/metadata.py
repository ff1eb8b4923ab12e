"""
Sérialisation/désérialisation du panier résolu dans les métadonnées Stripe.
Stripe limite chaque valeur de metadata à 500 caractères: le JSON compact
est découpé sur les clés "cart", "cart_1", "cart_2", ...
"""
import json
import logging
from typing import Any, Dict, Iterable, List, Tuple

from checkout_backend.catalog.models import ResolvedLineItem

logger = logging.getLogger(__name__)

METADATA_VALUE_LIMIT = 500
CART_KEY = "cart"

# module checkout_backend.payments.metadata
def _chunk_key(i: int) -> str:
    return CART_KEY if i == 0 else f"{CART_KEY}_{i}"

def make_metadata(items: Iterable[ResolvedLineItem]) -> Dict[str, str]:
    """
    Encode [[clé_canonique, quantité], ...] (JSON compact) pour la réconciliation.
    La description lisible des lignes n'est jamais utilisée pour retrouver les clés.
    """
    compact = json.dumps([[it.canonical_key, it.quantity] for it in items], separators=(",", ":"))
    chunks = [compact[i:i + METADATA_VALUE_LIMIT] for i in range(0, len(compact), METADATA_VALUE_LIMIT)] or ["[]"]
    return {_chunk_key(i): chunk for i, chunk in enumerate(chunks)}

def extract_cart(metadata: Dict[str, Any]) -> List[Tuple[str, int]]:
    """
    Reconstitue le panier [(clé, quantité)] depuis metadata.
    - Tolérant: retourne [] si absent ou illisible (erreur journalisée).
    - Accepte aussi l'ancien format [{"productId"|"key": ..., "quantity": ...}].
    """
    meta = metadata or {}
    parts: List[str] = []
    i = 0
    while _chunk_key(i) in meta:
        parts.append(str(meta[_chunk_key(i)]))
        i += 1
    if not parts:
        return []
    try:
        raw = json.loads("".join(parts))
    except ValueError:
        logger.warning("payments.metadata cart illisible chunks=%s", len(parts))
        return []

    cart: List[Tuple[str, int]] = []
    for entry in raw if isinstance(raw, list) else []:
        if isinstance(entry, list) and len(entry) == 2:
            key, qty = entry
        elif isinstance(entry, dict):
            key = entry.get("key") or entry.get("productId")
            qty = entry.get("quantity")
        else:
            continue
        try:
            qty = int(qty or 1)
        except (TypeError, ValueError):
            qty = 1
        if key:
            cart.append((str(key), max(qty, 1)))
    return cart

def extract_cart_from_event(event: Dict[str, Any]) -> List[Tuple[str, int]]:
    """Raccourci: event.data.object.metadata -> panier."""
    data_obj = ((event or {}).get("data") or {}).get("object") or {}
    return extract_cart(data_obj.get("metadata") or {})
