import logging
import os
import sqlite3
import time
from pathlib import Path
from typing import Any, Dict

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth_repository import delete_expired_sessions
from auth_service import DEV_SKIP_AUTH, DEV_USER_ID
from catalog_service import seed_missions_if_empty
from constants import SERVICE_NAME
from db import APP_DIR, connect_db, get_db
from db_migrations import apply_migrations
from mission_errors import MissionError, SERVER_FAULT
from mission_router import router as mission_router
from profile_repository import ensure_profile

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

FRONTEND_DIR = Path(os.environ.get("FRONTEND_DIR", str(APP_DIR / "build")))
CORS_ALLOW_ORIGINS = [
    o.strip() for o in os.environ.get("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()
]

app = FastAPI()
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(mission_router)


@app.exception_handler(MissionError)
def _mission_error_handler(request: Request, exc: MissionError) -> JSONResponse:
    if exc.fault == SERVER_FAULT:
        logging.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
    else:
        logging.info("%s %s rejected (%s): %s", request.method, request.url.path, type(exc).__name__, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.public_message})


@app.exception_handler(RequestValidationError)
def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if isinstance(p, str) and p != "body")
    reason = str(first.get("msg") or "invalid value")
    message = f"Invalid request body: {field} {reason}" if field else f"Invalid request body: {reason}"
    logging.info("%s %s rejected (validation): %s", request.method, request.url.path, message)
    return JSONResponse(status_code=400, content={"message": message})


@app.exception_handler(StarletteHTTPException)
def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})


@app.exception_handler(Exception)
def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logging.exception("Unhandled error in %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error."})


@app.on_event("startup")
def _startup():
    conn = connect_db()
    try:
        apply_migrations(conn)
        seeded = seed_missions_if_empty(conn)
        if seeded:
            logging.info("Seeded mission catalog with %d missions", seeded)
        delete_expired_sessions(conn, time.time())
        if DEV_SKIP_AUTH and ensure_profile(conn, DEV_USER_ID, display_name="Dev Pilot"):
            logging.info("Created dev pilot profile %s", DEV_USER_ID)
        conn.commit()
    finally:
        conn.close()


@app.get("/api/health")
def api_health(conn: sqlite3.Connection = Depends(get_db)) -> Dict[str, Any]:
    conn.execute("SELECT 1")
    return {
        "ok": True,
        "service": SERVICE_NAME,
    }


@app.get("/{path:path}", include_in_schema=False)
def spa(path: str):
    if path.startswith("api/"):
        raise HTTPException(status_code=404, detail="Not found")
    root = FRONTEND_DIR.resolve()
    if path:
        asset = (root / path).resolve()
        if asset.is_file() and asset.is_relative_to(root):
            return FileResponse(str(asset))
    index = root / "index.html"
    if not index.is_file():
        raise HTTPException(status_code=404, detail="Frontend build not found")
    return FileResponse(str(index))


if __name__ == "__main__":
    uvicorn.run(app, host=os.environ.get("HOST", "0.0.0.0"), port=int(os.environ.get("PORT", "5000")))
