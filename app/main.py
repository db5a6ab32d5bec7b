"""Backroom webhook and public read API."""

from __future__ import annotations

import json
import logging

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse
from pydantic import BaseModel, ValidationError

from src.backroom.runtime.service import get_backroom_service

logger = logging.getLogger(__name__)

NO_STORE_HEADERS = {"cache-control": "no-store, no-cache, must-revalidate, max-age=0"}

app = FastAPI(title="Backroom CMS Bot")


class HitRequest(BaseModel):
    path: str | None = None


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("cf-connecting-ip") or request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None and request.client.host:
        return request.client.host
    return "0.0.0.0"


def _process_update(update: dict) -> None:
    try:
        get_backroom_service().handle_update(update)
    except Exception:
        logger.exception("webhook update %s failed", update.get("update_id"))


@app.on_event("startup")
def _configure_logging() -> None:
    level = get_backroom_service().settings.log_level
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@app.get("/health")
def health() -> dict:
    return get_backroom_service().health()


@app.get("/webhook")
def webhook_probe() -> PlainTextResponse:
    return PlainTextResponse("OK", status_code=200)


@app.post("/webhook")
async def telegram_webhook(request: Request, background_tasks: BackgroundTasks) -> PlainTextResponse:
    body = await request.body()
    try:
        update = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return PlainTextResponse("Bad JSON", status_code=400)
    if not isinstance(update, dict):
        return PlainTextResponse("Bad JSON", status_code=400)

    background_tasks.add_task(_process_update, update)
    return PlainTextResponse("OK", status_code=200)


@app.get("/status")
def lobby_status() -> JSONResponse:
    return JSONResponse(get_backroom_service().status(), headers=NO_STORE_HEADERS)


@app.get("/now-playing")
def now_playing() -> JSONResponse:
    return JSONResponse(get_backroom_service().now_playing(), headers=NO_STORE_HEADERS)


@app.get("/tracks")
def recent_tracks(limit: int = 10) -> dict:
    return get_backroom_service().recent_tracks(limit=limit)


@app.post("/hit")
async def web_hit(request: Request, background_tasks: BackgroundTasks, path: str | None = None) -> dict:
    try:
        payload = HitRequest.model_validate(json.loads(await request.body() or b"{}"))
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError):
        payload = HitRequest()
    target = payload.path or path or "/"
    background_tasks.add_task(
        get_backroom_service().record_hit,
        ip=_client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
        path=str(target),
    )
    return {"ok": True}


@app.get("/media/{key:path}")
def media(key: str) -> FileResponse:
    found = get_backroom_service().media(key)
    if found is None:
        raise HTTPException(status_code=404, detail="Not found")
    return FileResponse(found["path"], media_type=found["content_type"])
