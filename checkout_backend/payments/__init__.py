"""
Module 'payments' (feature-first): point d'entrée public.
Réunit le client Stripe et l'encodage du panier dans la metadata de session.
Le service (création de session, résumé de commande) s'importe via payments.service.
"""

from .metadata import make_metadata, extract_cart, extract_cart_from_event
from .stripe_client import (
    require_stripe,
    create_session,
    get_session,
    list_line_items,
    construct_event,
)

__all__ = [
    # metadata
    "make_metadata",
    "extract_cart",
    "extract_cart_from_event",
    # stripe
    "require_stripe",
    "create_session",
    "get_session",
    "list_line_items",
    "construct_event",
]
