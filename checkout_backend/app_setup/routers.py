"""
Registre central des routers.
- API: checkout + order-summary, routes dev du catalogue
- Webhooks: Stripe
- Health: health_router
"""
from fastapi import FastAPI
from checkout_backend.payments import views as payments_views
from checkout_backend.catalog import views as catalog_views
from checkout_backend.settlement import views as settlement_views
from checkout_backend.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    # API storefront
    app.include_router(payments_views.router)
    app.include_router(catalog_views.router)
    # Webhooks
    app.include_router(settlement_views.router)
    # Health & monitoring
    app.include_router(health_router)
