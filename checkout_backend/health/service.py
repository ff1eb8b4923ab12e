from typing import Any, Dict

from checkout_backend import config
from checkout_backend.infra import stores

def _check_store(probe) -> Dict[str, Any]:
    try:
        return {"ok": True, "size": probe()}
    except Exception as e:
        return {"ok": False, "error": str(e)}

def config_health_info() -> Dict[str, Any]:
    """Présence des secrets (jamais leur valeur) et état des stockages."""
    secrets = {
        "stripe_secret_key": bool(config.STRIPE_SECRET_KEY),
        "stripe_webhook_secret": bool(config.STRIPE_WEBHOOK_SECRET),
        "email_api_key": bool(config.EMAIL_API_KEY),
    }
    info: Dict[str, Any] = {
        "degraded": not (secrets["stripe_secret_key"] and secrets["stripe_webhook_secret"]),
        "secrets": secrets,
        "catalog_source": config.CATALOG_SOURCE,
        "stock_backend": "redis" if config.STOCK_REDIS_URL else "memory",
        "stores": {
            "stock": _check_store(lambda: len(stores.get_stock_store().snapshot())),
            "orders": _check_store(lambda: len(stores.get_order_store().all())),
            "dead_letters": _check_store(lambda: len(stores.get_dead_letters().entries())),
        },
    }
    return info
