from __future__ import annotations

import random
from dataclasses import asdict
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .config import load_settings
from .engine import GameEngine, InputAction
from .meta import Profile, ProfileStore, badge_view
from .progress import ProfileProgressReporter, stats_from_profile


app = FastAPI(title="Into Stellar Backend")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # adjust for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class NewSessionRequest(BaseModel):
    seed: Optional[int] = None
    level: Optional[int] = Field(None, ge=1)  # defaults to the saved level
    round: int = Field(1, ge=1)


class InputRequest(BaseModel):
    action: str


class TickRequest(BaseModel):
    count: int = Field(1, ge=1, le=100)


class AdvanceRequest(BaseModel):
    seconds: float = Field(..., ge=0.0, le=60.0)


# One single-player session per process
_session: Dict[str, GameEngine] = {}


def _store():
    settings = load_settings()
    return settings, ProfileStore(settings.meta.save_path)


def _engine() -> GameEngine:
    engine = _session.get("engine")
    if engine is None:
        raise HTTPException(404, "No active session")
    return engine


def _view(engine: GameEngine) -> Dict[str, Any]:
    return engine.get_snapshot(include_notices=True).to_dict()


@app.get("/api/settings")
def get_settings() -> Dict[str, Any]:
    s = load_settings()
    return {
        "grid": s.grid.__dict__,
        "difficulty": s.difficulty.__dict__,
        "scoring": s.scoring.__dict__,
        "timing": s.timing.__dict__,
    }


@app.post("/api/session")
def new_session(req: NewSessionRequest) -> Dict[str, Any]:
    settings, store = _store()
    p = store.load()
    stats = stats_from_profile(p)
    reporter = ProfileProgressReporter(store, settings.meta.badges)
    engine = GameEngine(settings, stats, reporter=reporter, rng=random.Random(req.seed))
    engine.start_game(req.level, req.round)
    _session["engine"] = engine
    return _view(engine)


@app.get("/api/session")
def get_session() -> Dict[str, Any]:
    return _view(_engine())


@app.post("/api/session/input")
def session_input(req: InputRequest) -> Dict[str, Any]:
    engine = _engine()
    action = InputAction.parse(req.action)
    if action is None:
        raise HTTPException(422, f"Unknown action: {req.action}")
    engine.handle_input(action)
    return _view(engine)


@app.post("/api/session/tick")
def session_tick(req: TickRequest) -> Dict[str, Any]:
    engine = _engine()
    for _ in range(req.count):
        engine.on_tick()
    return _view(engine)


@app.post("/api/session/advance")
def session_advance(req: AdvanceRequest) -> Dict[str, Any]:
    engine = _engine()
    engine.update(req.seconds)
    return _view(engine)


@app.post("/api/session/restart")
def session_restart() -> Dict[str, Any]:
    engine = _engine()
    engine.restart()
    return _view(engine)


@app.post("/api/session/end")
def session_end() -> Dict[str, Any]:
    engine = _engine()
    engine.end_game()
    return _view(engine)


@app.post("/api/session/sync")
def session_sync() -> Dict[str, Any]:
    engine = _engine()
    result = engine.sync_progress()
    return {"result": asdict(result), "session": _view(engine)}


def _profile_view(profile: Profile, badges: Dict[str, int]) -> Dict[str, Any]:
    data = profile.to_dict()
    data["badges"] = badge_view(profile, badges)
    return data


@app.get("/api/profile")
def get_profile() -> Dict[str, Any]:
    settings, store = _store()
    return _profile_view(store.load(), settings.meta.badges)


@app.post("/api/profile/reset")
def reset_profile() -> Dict[str, Any]:
    settings, store = _store()
    return _profile_view(store.reset(), settings.meta.badges)
