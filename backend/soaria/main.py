"""
Soaria quest engine — FastAPI backend
"""
import logging
import os
from dataclasses import asdict

from fastapi import FastAPI, Header, HTTPException, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from . import db as store
from .engine import daily, lifecycle, matcher, progress, stats
from .engine.errors import QuestError, UnknownCounter
from .models import StatEvent, StatBatch, TargetEvent, ProgressEvent, LevelEvent

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
app = FastAPI(title="Soaria Quest Engine")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

ALLOWED_ORIGINS = [
    o.strip() for o in os.environ.get("SOARIA_ALLOWED_ORIGINS", "http://localhost:5173").split(",") if o.strip()
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)


@app.exception_handler(QuestError)
async def quest_error_handler(request: Request, exc: QuestError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.reason, "detail": exc.message})


@app.exception_handler(UnknownCounter)
async def unknown_counter_handler(request: Request, exc: UnknownCounter):
    return JSONResponse(status_code=422, content={"error": "unknown_counter", "detail": str(exc)})


@app.get("/health")
def health():
    try:
        db = store.get_client()
        db.table("quests").select("id").limit(1).execute()
        return {"status": "ok", "db": "ok"}
    except Exception as e:
        logger.error("Health check DB failure: %s", e)
        raise HTTPException(status_code=503, detail="DB unavailable")


# ── Auth ──────────────────────────────────────────────────────────────────────
# Sessions live in the gateway; it forwards the authenticated user id.

def get_user_id(authorization: str = Header(...)) -> int:
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing Bearer token")
    token = authorization.removeprefix("Bearer ").strip()
    if not token.isdigit():
        raise HTTPException(status_code=401, detail="Invalid token")
    return int(token)


def require_user(user_id: int = Depends(get_user_id)) -> int:
    db = store.get_client()
    if not store.get_user(db, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return user_id


# ── Login / profile ───────────────────────────────────────────────────────────

@app.post("/api/login")
@limiter.limit("30/minute")
def login_hook(request: Request, user_id: int = Depends(require_user)):
    db = store.get_client()
    result = daily.on_login(db, user_id)
    return {"status": "ok", **asdict(result)}


@app.get("/api/profile")
def get_profile(user_id: int = Depends(require_user)):
    db = store.get_client()
    try:
        daily.check_daily_login_quests(db, user_id)
    except Exception:
        logger.exception("Daily login check failed on profile fetch for user %s", user_id)

    user = store.get_user(db, user_id) or {}
    player = store.get_player_stats(db, user_id)
    return {
        "username": user.get("username"),
        "gold": user.get("gold", 0),
        "level": player.get("level") or 1,
        "experience": player.get("experience") or 0,
        "statistics": stats.get_statistics(db, user_id),
        "claimable_quests": lifecycle.claimable_count(db, user_id),
    }


@app.get("/api/statistics")
def get_statistics(user_id: int = Depends(require_user)):
    db = store.get_client()
    user = store.get_user(db, user_id) or {}
    return {"statistics": stats.get_statistics(db, user_id), "username": user.get("username")}


# ── Quests ────────────────────────────────────────────────────────────────────

@app.get("/api/quests")
def list_quests(user_id: int = Depends(require_user)):
    db = store.get_client()
    return {"quests": lifecycle.list_quests(db, user_id)}


@app.get("/api/quests/claimable-count")
def claimable_count(user_id: int = Depends(require_user)):
    db = store.get_client()
    return {"count": lifecycle.claimable_count(db, user_id)}


@app.get("/api/quests/{quest_id}")
def get_quest(quest_id: int, user_id: int = Depends(require_user)):
    db = store.get_client()
    return {"quest": lifecycle.get_quest_detail(db, user_id, quest_id)}


@app.post("/api/quests/{quest_id}/accept")
@limiter.limit("30/minute")
def accept_quest(request: Request, quest_id: int, user_id: int = Depends(require_user)):
    db = store.get_client()
    result = lifecycle.accept_quest(db, user_id, quest_id)
    return {
        "status": result.status,
        "already_completed": result.status == "completed",
        "progress_carried_over": result.any_progress,
        "objectives": [asdict(o) for o in result.objectives],
    }


@app.post("/api/quests/{quest_id}/claim")
@limiter.limit("30/minute")
def claim_quest(request: Request, quest_id: int, user_id: int = Depends(require_user)):
    db = store.get_client()
    result = lifecycle.claim_quest(db, user_id, quest_id)
    return {
        "status": "claimed",
        "rewards": result.rewards,
        "failed": result.failed,
        "notified": result.notified,
    }


@app.post("/api/quests/{quest_id}/abandon")
@limiter.limit("30/minute")
def abandon_quest(request: Request, quest_id: int, user_id: int = Depends(require_user)):
    db = store.get_client()
    lifecycle.abandon_quest(db, user_id, quest_id)
    return {"status": "abandoned"}


# ── Event fan-in from gameplay subsystems ─────────────────────────────────────

@app.post("/api/events/stat")
@limiter.limit("120/minute")
def record_stat(request: Request, body: StatEvent, user_id: int = Depends(require_user)):
    db = store.get_client()
    stats.increment(db, user_id, body.counter, body.amount)
    return {"status": "ok"}


@app.post("/api/events/stats")
@limiter.limit("120/minute")
def record_stats(request: Request, body: StatBatch, user_id: int = Depends(require_user)):
    db = store.get_client()
    stats.increment_many(db, user_id, body.stats)
    return {"status": "ok"}


@app.post("/api/events/target")
@limiter.limit("120/minute")
def record_target(request: Request, body: TargetEvent, user_id: int = Depends(require_user)):
    db = store.get_client()
    advanced = matcher.on_target_event(db, user_id, body.objective_type, body.target_id, body.amount)
    return {"status": "ok", "advanced": advanced}


@app.post("/api/events/progress")
@limiter.limit("120/minute")
def record_progress(request: Request, body: ProgressEvent, user_id: int = Depends(require_user)):
    db = store.get_client()
    row = progress.record_specific_progress(db, user_id, body.quest_id, body.objective_id, body.amount)
    return {"status": "ok" if row else "ignored"}


@app.post("/api/events/level")
@limiter.limit("120/minute")
def record_level(request: Request, body: LevelEvent, user_id: int = Depends(require_user)):
    db = store.get_client()
    return {"status": "ok", "advanced": matcher.on_level_reached(db, user_id, body.level)}


@app.post("/api/events/guild-joined")
@limiter.limit("30/minute")
def record_guild_joined(request: Request, user_id: int = Depends(require_user)):
    db = store.get_client()
    return {"status": "ok", "advanced": matcher.on_guild_joined(db, user_id)}
