from fastapi import APIRouter

from chitjar.api.routes import analytics, bids, entries, exports, funds, health


api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(funds.router)
api_router.include_router(entries.router)
api_router.include_router(bids.router)
api_router.include_router(analytics.router)
api_router.include_router(exports.router)
