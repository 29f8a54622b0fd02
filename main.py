# FILE: main.py
"""
AutoPlanner Backend - FastAPI Application
Version: 0.1.0

Turns a natural-language request into a generated multi-file project:
- Pluggable LLM channels (Google native, OpenAI, OpenRouter, OpenAI-compatible)
- Live generation preview over Server-Sent Events
- File extraction from the generated markdown, additive merge into the project
- Per-project version history (commit / revert / delete)
- Connectivity monitor with cooldown and rate-limit backoff
- Operational log (terminal view)
"""
import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load .env FIRST before any other imports that might need env vars
load_dotenv()

from app.db import init_db
from app.connectivity.router import router as connectivity_router
from app.connectivity.service import get_monitor
from app.generation.router import router as generation_router
from app.oplog.router import router as oplog_router
from app.projects.router import router as projects_router
from app.providers.router import router as providers_router
from config.network import NETWORK_CONFIG

logging.basicConfig(
    level=os.getenv("AUTOPLANNER_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="AutoPlanner",
    version="0.1.0",
    description="LLM-driven multi-file project generator with version history",
)

# ====== CORS ======

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:8000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ====== STARTUP / SHUTDOWN ======

@app.on_event("startup")
async def on_startup():
    init_db()

    print("[startup] Checking environment variables...")
    if os.getenv("GOOGLE_API_KEY"):
        print("[startup] GOOGLE_API_KEY: [OK] set (managed Studio channel)")
    else:
        print("[startup] GOOGLE_API_KEY: [X] NOT SET - internal channel will report 'API Key missing'")

    print(
        "[startup] Network: cooldown=%ss timeout=%ss penalty=%ss"
        % (NETWORK_CONFIG["MIN_CHECK_INTERVAL"], NETWORK_CONFIG["REQUEST_TIMEOUT"], NETWORK_CONFIG["PENALTY_DELAY"])
    )

    if os.getenv("AUTOPLANNER_DISABLE_MONITOR", "false").lower() != "true":
        get_monitor().start()
        print("[startup] Connectivity monitor: [OK] polling")
    else:
        print("[startup] Connectivity monitor: [X] DISABLED")


@app.on_event("shutdown")
async def on_shutdown():
    await get_monitor().stop()


# ====== ROUTERS ======

app.include_router(projects_router)
app.include_router(generation_router)
app.include_router(providers_router)
app.include_router(connectivity_router)
app.include_router(oplog_router)


# ====== PUBLIC ENDPOINTS ======

@app.get("/ping")
def ping():
    """Health check."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=os.getenv("AUTOPLANNER_HOST", "127.0.0.1"),
        port=int(os.getenv("AUTOPLANNER_PORT", "8000")),
    )
