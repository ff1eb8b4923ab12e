"""
Gestionnaires d’exceptions.
- HTTPException: JSON {"detail": ...} stable pour le storefront (codes EMPTY_CART, UNRESOLVED_ITEM:<clé>, ...).
- Erreur non gérée: 500 générique, détail journalisé côté serveur uniquement.
"""
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def json_http_error(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)

    @app.exception_handler(Exception)
    async def json_unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled error path=%s", request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})
