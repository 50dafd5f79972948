"""Data API routes - clients, funding containers, agreements, contracts, catalog, ledger and form configuration."""
from fastapi import APIRouter

from app.data.agreements.routes import router as agreements_router
from app.data.buckets.routes import router as buckets_router
from app.data.catalog.routes import router as catalog_router
from app.data.clients.routes import router as clients_router
from app.data.contracts.routes import router as contracts_router
from app.data.form_config.routes import router as form_config_router
from app.data.templates.routes import router as templates_router
from app.data.transactions.routes import router as transactions_router

router = APIRouter()

router.include_router(clients_router, tags=["Clients"])
router.include_router(templates_router, tags=["Bucket Templates"])
router.include_router(buckets_router, tags=["Buckets"])
router.include_router(agreements_router, tags=["Service Agreements"])
router.include_router(contracts_router, tags=["Contracts"])
router.include_router(catalog_router, tags=["Services"])
router.include_router(transactions_router, tags=["Transactions"])
router.include_router(form_config_router, tags=["Form Configuration"])
