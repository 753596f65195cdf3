# FILE: main.py
"""
Driftpin Backend - FastAPI Application
Version: 0.4.0

Features:
- Drop anonymous messages at a coordinate
- Radius and viewport queries (Haversine distance, nearest first)
- Replies that extend a message's lifetime, up to a hard cap
- Opacity/color decay computed from remaining lifetime
- SQL (default) or Redis geo-index storage
- Periodic sweep of expired messages
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load .env FIRST before any other imports that might need env vars
load_dotenv()

from driftpin import __version__
from driftpin.db import init_db
from driftpin.messages.router import router as messages_router
from driftpin.settings import get_config

config = get_config()

app = FastAPI(
    title="Driftpin",
    version=__version__,
    description="Anonymous, location-scoped messages that fade away",
)

# ====== CORS ======

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(config.cors_origins),
    allow_credentials="*" not in config.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ====== STARTUP ======

@app.on_event("startup")
async def on_startup():
    print(f"[startup] Storage backend: {config.store.backend}")
    if config.store.backend == "sql":
        init_db()
        print("[startup] Database: [OK] tables ready")
    else:
        from driftpin.messages.redis_store import get_redis_client
        try:
            get_redis_client().ping()
            print("[startup] Redis: [OK] reachable")
        except Exception as e:
            print(f"[startup] Redis: [X] NOT REACHABLE ({e}) - requests will return 503")

    lt = config.lifetime
    print(
        f"[startup] Lifetime: default={lt.default_lifetime_hours}h, "
        f"max={lt.max_lifetime_hours}h, +{lt.reply_extension_hours}h per reply"
    )

    if config.seed_samples:
        _seed_samples()

    if config.sweep.enabled:
        from driftpin.messages.expiry_job import get_scheduler
        await get_scheduler().start()
        print(f"[startup] Expiry sweep: [OK] every {config.sweep.interval_minutes} minutes")
    else:
        print("[startup] Expiry sweep: [X] DISABLED")
        print("[startup]   Set DRIFTPIN_SWEEP_ENABLED=true to enable")


@app.on_event("shutdown")
async def on_shutdown():
    if config.sweep.enabled:
        from driftpin.messages.expiry_job import get_scheduler
        await get_scheduler().stop()
    if config.store.backend == "redis":
        from driftpin.messages.redis_store import close_redis_client
        close_redis_client()


def _seed_samples():
    from driftpin.messages.backend import open_store
    from driftpin.messages.samples import generate_sample_messages

    if config.seed_center is None:
        print("[startup] Sample data: [X] DRIFTPIN_SEED_CENTER not set, skipping")
        return
    with open_store() as store:
        if store.count() > 0:
            print("[startup] Sample data: store not empty, skipping")
            return
        created = generate_sample_messages(store, *config.seed_center)
    print(f"[startup] Sample data: [OK] seeded {len(created)} messages")


# ====== ROUTERS ======

app.include_router(messages_router)


# ====== PUBLIC ENDPOINTS ======

@app.get("/")
def root():
    return {"status": "Driftpin backend running", "version": __version__}


@app.get("/ping")
def ping():
    """Health check."""
    return {"status": "ok", "backend": config.store.backend}


@app.get("/sweep/status")
def sweep_status():
    """Expiry sweep scheduler state."""
    from driftpin.messages.expiry_job import get_scheduler
    return get_scheduler().get_status()
