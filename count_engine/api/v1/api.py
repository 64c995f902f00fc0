from fastapi import APIRouter
from count_engine.api.v1.endpoints.inventory import inventory_counts, items

api_router = APIRouter()

# Inventory
api_router.include_router(inventory_counts.router, prefix="/inventory-counts", tags=["Inventory Counts"])
api_router.include_router(items.router, prefix="/items", tags=["Inventory Items"])
