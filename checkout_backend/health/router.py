from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from checkout_backend.health.service import config_health_info
from checkout_backend.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root():
    return {"ok": True}

@router.get("/config")
def health_config(request: Request):
    info = config_health_info()
    info["rate_limit"] = rate_limit_health_info(request)
    return JSONResponse(info)
