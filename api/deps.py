from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from fastapi import Request

from ledger.core.config import Config
from ledger.core.database import Database
from ledger.insurance.workflow import InsuranceWorkflow


@lru_cache
def _repo_root() -> Path:
    # Assume running from repo root (uvicorn started there). Fallback to parent of this file.
    here = Path(__file__).resolve()
    for p in [Path.cwd(), here.parent.parent]:
        if (p / "config" / "default.yaml").exists():
            return p
    return Path.cwd()


@lru_cache
def load_config() -> Config:
    return Config.from_repo_defaults(_repo_root())


def get_config(request: Request) -> Config:
    cfg = getattr(request.app.state, "config", None)
    return cfg or load_config()


def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        db = Database(get_config(request).db_path)
        request.app.state.db = db
    return db


def get_workflow(request: Request) -> InsuranceWorkflow:
    wf = getattr(request.app.state, "workflow", None)
    if wf is None:
        wf = InsuranceWorkflow.from_config(get_config(request), db=get_db(request))
        request.app.state.workflow = wf
    return wf
