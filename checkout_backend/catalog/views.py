"""
Routes d'inspection du catalogue et du stock (dev uniquement, EXPOSE_DEV_ENDPOINTS=1).
"""
from typing import Any, Dict

from fastapi import APIRouter, HTTPException

from checkout_backend import config
from checkout_backend.infra import stores

router = APIRouter(prefix="/api", tags=["Catalog (dev)"])

def _require_dev() -> None:
    if not config.EXPOSE_DEV_ENDPOINTS:
        raise HTTPException(status_code=404, detail="Not Found")

# module checkout_backend.catalog.views
@router.get("/prices", include_in_schema=False)
def list_prices() -> Dict[str, Any]:
    _require_dev()
    catalog = stores.get_catalog()
    return {
        "prices": {e.canonical_key: e.to_dict() for e in catalog.entries()},
        "aliases": dict(catalog.aliases),
    }

@router.get("/stock", include_in_schema=False)
def list_stock() -> Dict[str, Any]:
    _require_dev()
    return {"stock": stores.get_stock_store().snapshot()}
