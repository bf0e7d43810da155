from fastapi import APIRouter

from stock_reconciler.api.api_v1.endpoints import (
    stores,
    suppliers,
    products,
    inventory,
    receipts,
    new_products,
    identity_mappings
)

api_router = APIRouter()

api_router.include_router(stores.router, prefix="/stores", tags=["stores"])
api_router.include_router(suppliers.router, prefix="/suppliers", tags=["suppliers"])
api_router.include_router(products.router, prefix="/products", tags=["products"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
api_router.include_router(receipts.router, prefix="/receipts", tags=["receipts"])
api_router.include_router(new_products.router, prefix="/new-products", tags=["new-products"])
api_router.include_router(identity_mappings.router, prefix="/identity-mappings", tags=["identity-mappings"])
