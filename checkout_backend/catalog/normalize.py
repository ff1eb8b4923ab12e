"""
Normalisation des identifiants envoyés par le storefront (SKU, lookup key, price id).
Fonction totale et idempotente: les clés inconnues ne sont détectées qu'au lookup.
"""
import re
from typing import Dict, Mapping, Optional

from .models import PRICE_REF_PREFIX

KNOWN_VARIANT_SUFFIXES = ("default", "one-size", "os", "std")

_WHITESPACE_RE = re.compile(r"\s+")
_VARIANT_SUFFIX_RE = re.compile(r"[/|:](?:%s)$" % "|".join(re.escape(s) for s in KNOWN_VARIANT_SUFFIXES))

# module checkout_backend.catalog.normalize
def _base_form(raw) -> str:
    key = str(raw if raw is not None else "").strip()
    if key.startswith(PRICE_REF_PREFIX):
        return key
    key = _WHITESPACE_RE.sub("-", key.lower())
    # Point fixe: "tee/default|os" -> "tee"
    while True:
        stripped = _VARIANT_SUFFIX_RE.sub("", key).strip("-")
        if stripped == key:
            return key
        key = stripped

def normalize_identifier(raw, aliases: Optional[Mapping[str, str]] = None) -> str:
    """
    Ramène un identifiant client à sa clé canonique.
    - Référence de prix Stripe (préfixe "price_"): renvoyée telle quelle (sensible à la casse).
    - Sinon: minuscules, espaces -> "-", suffixes de variante connus retirés
      (ex: "VEIN-001/default" -> "vein-001").
    - Table d'alias (SKU "amical" -> clé canonique) appliquée en dernier.
    Ne lève jamais d'exception.
    """
    key = _base_form(raw)
    if aliases and not key.startswith(PRICE_REF_PREFIX):
        return aliases.get(key, key)
    return key

def build_alias_table(raw_aliases: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """
    Normalise une table d'alias et refuse les chaînes d'alias (cible qui est elle-même un alias),
    sans quoi normalize_identifier ne serait plus idempotente.
    """
    table: Dict[str, str] = {}
    for alias, target in (raw_aliases or {}).items():
        table[_base_form(alias)] = _base_form(target)
    chained = sorted(a for a, t in table.items() if t in table and table[t] != t)
    if chained:
        raise ValueError(f"Alias chaînés interdits: {', '.join(chained)}")
    # Un alias vers lui-même est inutile
    return {a: t for a, t in table.items() if a != t}
