from fastapi import APIRouter

from app.api.routes import chat, schema

api_router = APIRouter()

# API routes (all have /api/v1 prefix from the app factory)
api_router.include_router(chat.router, prefix="/chat", tags=["chat"])
api_router.include_router(schema.router, prefix="/schema", tags=["schema"])
