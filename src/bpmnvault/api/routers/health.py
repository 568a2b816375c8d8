from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from bpmnvault import __version__
from bpmnvault.config import get_settings
from bpmnvault.context import get_request_context
from bpmnvault.database import get_db

router = APIRouter(tags=["system"])


@router.get("/health")
def health() -> dict:
    ctx = get_request_context()
    settings = get_settings()
    return {
        "ok": True,
        "service": "bpmnvault",
        "version": __version__,
        "user_id": ctx.user_id,
        "schema_mode": settings.SCHEMA_MODE,
    }


@router.get("/health/deps")
def health_deps(db: Session = Depends(get_db)) -> dict:
    deps: dict = {}
    try:
        db.execute(text("SELECT 1"))
        deps["db"] = {"ok": True}
    except Exception as exc:
        deps["db"] = {"ok": False, "error": str(exc)}
    return {
        "ok": all(dep["ok"] for dep in deps.values()),
        "service": "bpmnvault",
        "version": __version__,
        "deps": deps,
    }
