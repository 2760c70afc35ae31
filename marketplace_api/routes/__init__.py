"""API routes."""

from fastapi import APIRouter

from marketplace_api.routes import integrations, products

api_router = APIRouter()

# Product CRUD + manual bundle ingestion
api_router.include_router(products.router, prefix="/api/products", tags=["products"])

# Pass-through integrations (transcription, processing service)
api_router.include_router(integrations.router, prefix="/api", tags=["integrations"])
