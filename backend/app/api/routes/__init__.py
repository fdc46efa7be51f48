from fastapi import APIRouter

from app.api.routes import analytics, chat, health, ocr, predictions, reports, smart


api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(analytics.router)
api_router.include_router(smart.router)
api_router.include_router(predictions.router)
api_router.include_router(reports.router)
api_router.include_router(chat.router)
api_router.include_router(ocr.router)
