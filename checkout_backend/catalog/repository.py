"""
Accès au catalogue (source de vérité des prix).
- StaticCatalog: table en processus chargée depuis un fichier JSON.
- StripePriceCatalog: requête groupée sur les lookup_keys des Prices Stripe.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from checkout_backend.payments import stripe_client
from .models import CatalogEntry
from .normalize import build_alias_table, normalize_identifier

logger = logging.getLogger(__name__)

def _unique(keys: Iterable[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for k in keys:
        seen.setdefault(k, None)
    return list(seen)

# module checkout_backend.catalog.repository
class StaticCatalog:
    def __init__(self, entries: Iterable[CatalogEntry], aliases: Optional[Mapping[str, str]] = None):
        self._entries: Dict[str, CatalogEntry] = {e.canonical_key: e for e in entries}
        self.aliases = build_alias_table(aliases)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StaticCatalog":
        """
        Construit le catalogue depuis {"aliases": {...}, "products": [{key, name, unit_amount, currency, stock?}]}.
        - currency est ramenée en minuscules (ISO 4217)
        - stock absent ou null = non suivi
        """
        entries = []
        for p in data.get("products") or []:
            stock = p.get("stock")
            entries.append(CatalogEntry(
                canonical_key=normalize_identifier(p["key"]),
                display_name=p.get("name") or str(p["key"]),
                unit_amount=int(p["unit_amount"]),
                currency=str(p.get("currency") or "gbp").lower(),
                available_stock=int(stock) if stock is not None else None,
            ))
        return cls(entries, data.get("aliases"))

    @classmethod
    def from_json(cls, path: Path) -> "StaticCatalog":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        catalog = cls.from_dict(data)
        logger.info("catalog.static loaded path=%s entries=%s aliases=%s", path, len(catalog._entries), len(catalog.aliases))
        return catalog

    def lookup(self, keys: Iterable[str]) -> Dict[str, CatalogEntry]:
        return {k: self._entries[k] for k in _unique(keys) if k in self._entries}

    def entries(self) -> List[CatalogEntry]:
        return list(self._entries.values())

class StripePriceCatalog:
    """
    Catalogue distant: une clé canonique = lookup_key d'un Price Stripe actif.
    Les clés répétées sont dédupliquées avant la requête puis le résultat est
    redistribué à toutes les lignes qui les demandent.
    """

    BATCH_SIZE = 10  # limite Stripe sur lookup_keys par requête

    def __init__(self, aliases: Optional[Mapping[str, str]] = None):
        self.aliases = build_alias_table(aliases)

    def lookup(self, keys: Iterable[str]) -> Dict[str, CatalogEntry]:
        unique_keys = _unique(keys)
        found: Dict[str, CatalogEntry] = {}
        for i in range(0, len(unique_keys), self.BATCH_SIZE):
            batch = unique_keys[i:i + self.BATCH_SIZE]
            for price in stripe_client.list_prices_by_lookup_keys(batch):
                entry = self._entry_from_price(price)
                if entry and entry.canonical_key in batch:
                    found[entry.canonical_key] = entry
        return found

    def entries(self) -> List[CatalogEntry]:
        return []

    @staticmethod
    def _entry_from_price(price: Mapping[str, Any]) -> Optional[CatalogEntry]:
        key = price.get("lookup_key")
        unit_amount = price.get("unit_amount")
        if not key or unit_amount is None:
            return None
        product = price.get("product")
        name = product.get("name") if hasattr(product, "get") else None
        return CatalogEntry(
            canonical_key=str(key),
            display_name=name or price.get("nickname") or str(key),
            unit_amount=int(unit_amount),
            currency=str(price.get("currency") or "").lower(),
        )
