# src/app/main.py
from __future__ import annotations
import logging
import sys
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.app.config import settings
from src.app.error_handlers import register_error_handlers
from src.app.routers.auth import router as auth_router
from src.app.routers.conversations import router as conversations_router
from src.app.routers.recipes import router as recipes_router
from src.app.routers.session import router as session_router

# Plain stdout logging (fine for dev and containers)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

app = FastAPI(title="Cheffy API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(auth_router)
app.include_router(session_router)
app.include_router(conversations_router)
app.include_router(recipes_router)


@app.get("/health")
def health():
    return {"ok": True}
