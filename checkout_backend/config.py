# checkout_backend.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

PACKAGE_DIR = Path(__file__).resolve().parent
DATA_DIR = BASE_DIR / "data"

"""
Configuration centrale du backend checkout.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets Stripe, les URLs de redirection du checkout
- Expose les chemins de persistance (commandes, dead-letters) et le catalogue
- Paramètres de l'envoi d'email transactionnel et des origines CORS
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _csv_env(name: str, default: str) -> list[str]:
    return [v.strip() for v in os.getenv(name, default).split(",") if v.strip()]

def _flag_env(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")

# Stripe: clés secrètes et secret de signature webhook
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")
STRIPE_API_VERSION = _clean_env(os.getenv("STRIPE_API_VERSION") or "2024-06-20")

# CORS: origines exactes autorisées (storefront + dev local)
CORS_ORIGINS = _csv_env(
    "CORS_ORIGINS",
    "https://nvrbrth.store,http://localhost:3000,http://127.0.0.1:3000",
)

# Redirections du checkout hébergé ({CHECKOUT_SESSION_ID} est substitué par Stripe)
CHECKOUT_SUCCESS_URL = os.getenv(
    "CHECKOUT_SUCCESS_URL",
    "https://nvrbrth.store/thankyou.html?session_id={CHECKOUT_SESSION_ID}",
)
CHECKOUT_CANCEL_URL = os.getenv("CHECKOUT_CANCEL_URL", "https://nvrbrth.store/basket.html?canceled=1")

# Politique de session: pays de livraison et codes promo
SHIPPING_COUNTRIES = [c.upper() for c in _csv_env(
    "SHIPPING_COUNTRIES",
    "GB,IE,US,CA,AU,NZ,DE,FR,ES,IT,NL,SE",
)]
ALLOW_PROMOTION_CODES = _flag_env("ALLOW_PROMOTION_CODES", "true")

# Panier: plafond de quantité par ligne
CART_MAX_QTY = int(os.getenv("CART_MAX_QTY", "10"))

# Catalogue: "static" (fichier JSON) ou "stripe" (lookup_keys des Prices Stripe)
CATALOG_SOURCE = os.getenv("CATALOG_SOURCE", "static").strip().lower()
CATALOG_PATH = Path(os.getenv("CATALOG_PATH") or (PACKAGE_DIR / "catalog" / "default_catalog.json"))

# Stock: en mémoire par défaut, Redis si STOCK_REDIS_URL est défini
STOCK_REDIS_URL = _clean_env(os.getenv("STOCK_REDIS_URL") or "")

# Persistance: journal des commandes et canal d'échecs (dead-letter)
ORDERS_PATH = Path(os.getenv("ORDERS_PATH") or (DATA_DIR / "orders.jsonl"))
DEAD_LETTER_PATH = Path(os.getenv("DEAD_LETTER_PATH") or (DATA_DIR / "dead_letters.jsonl"))

# Email transactionnel (API HTTP type Resend/Postmark)
EMAIL_API_URL = _clean_env(os.getenv("EMAIL_API_URL") or "")
EMAIL_API_KEY = _clean_env(os.getenv("EMAIL_API_KEY") or "")
EMAIL_FROM = _clean_env(os.getenv("EMAIL_FROM") or "NVRBRTH <orders@nvrbrth.store>")
STORE_NAME = os.getenv("STORE_NAME", "NVRBRTH")

# Routes d'inspection (prix/stock) réservées au dev
EXPOSE_DEV_ENDPOINTS = _flag_env("EXPOSE_DEV_ENDPOINTS")
