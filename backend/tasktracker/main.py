from __future__ import annotations

import logging
import os
import time

import redis
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import accounts, db, stats, tasks
from .auth import TokenUser
from .deps import get_current_user, get_db
from .errors import AppError
from .logging_setup import setup_logging
from .models import Base
from .schemas import AuthOut, LoginIn, MeOut, MessageOut, SignupIn, StatsOut, TaskIn, TaskOut

logger = logging.getLogger(__name__)

app = FastAPI(title="Task Tracker API")

cors_origins = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

redis_url = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
r = redis.Redis.from_url(redis_url, decode_responses=True)


@app.on_event("startup")
def _startup():
    setup_logging()

    # Postgres in docker-compose might not be ready when API boots.
    # Retry a few times before failing hard.
    last_exc: Exception | None = None
    for _ in range(30):
        try:
            engine = db.get_engine()
            Base.metadata.create_all(bind=engine)
            db.engine = engine
            logger.info("database ready")
            return
        except SQLAlchemyError as exc:
            last_exc = exc
            logger.warning("database not ready yet: %s", exc)
            time.sleep(1.0)
    raise RuntimeError(f"DB init failed after retries: {last_exc}")


# ---- error mapping: every error body is {"message": ...}


@app.exception_handler(AppError)
async def _app_error(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def _request_validation_error(request: Request, exc: RequestValidationError):
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(status_code=400, content={"message": ", ".join(parts) or "Invalid request"})


@app.exception_handler(Exception)
async def _unhandled(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Server error"})


# ---- probes


@app.get("/health")
def health():
    db_ok = False
    if db.engine is not None:
        try:
            with db.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            db_ok = True
        except SQLAlchemyError:
            db_ok = False
    try:
        r.ping()
        redis_ok = True
    except redis.RedisError:
        redis_ok = False
    return {"ok": True, "db": db_ok, "redis": redis_ok}


@app.get("/healthz")
async def healthz():
    # super cheap liveness probe
    return {"ok": True}


@app.get("/api/test")
async def api_test():
    return {"message": "Backend is working!"}


# ---- auth


@app.post("/api/auth/signup", response_model=AuthOut, status_code=201)
def signup(body: SignupIn, s: Session = Depends(get_db)):
    token, user = accounts.signup(s, body.email, body.username, body.password)
    return AuthOut(token=token, user=user, message="User registered successfully")


@app.post("/api/auth/login", response_model=AuthOut)
def login(body: LoginIn, s: Session = Depends(get_db)):
    token, user = accounts.login(s, body.email_or_username, body.password)
    return AuthOut(token=token, user=user, message="Login successful")


@app.get("/api/auth/me", response_model=MeOut)
def me(current: TokenUser = Depends(get_current_user), s: Session = Depends(get_db)):
    return MeOut(user=accounts.get_current_user(s, current.user_id))


@app.post("/api/auth/logout", response_model=MessageOut)
def logout(current: TokenUser = Depends(get_current_user)):
    # tokens are stateless; the client drops it
    logger.info("user logged out: id=%s", current.user_id)
    return MessageOut(message="Logout successful")


# ---- tasks


@app.post("/api/tasks", response_model=TaskOut, status_code=201)
def create_task(body: TaskIn, current: TokenUser = Depends(get_current_user), s: Session = Depends(get_db)):
    return tasks.create_task(s, current.user_id, body.title, body.description, body.due_date, body.priority)


@app.get("/api/tasks", response_model=list[TaskOut])
def list_tasks(
    status: str | None = None,
    priority: str | None = None,
    search: str | None = None,
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    filter: str = "all",
    current: TokenUser = Depends(get_current_user),
    s: Session = Depends(get_db),
):
    q = tasks.TaskQuery(
        status=status,
        priority=priority,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        filter=filter,
    )
    return tasks.list_tasks(s, current.user_id, q)


@app.get("/api/tasks/stats/overview", response_model=StatsOut)
def task_stats(current: TokenUser = Depends(get_current_user), s: Session = Depends(get_db)):
    return stats.get_statistics(s, current.user_id)


@app.get("/api/tasks/{task_id}", response_model=TaskOut)
def get_task(task_id: int, current: TokenUser = Depends(get_current_user), s: Session = Depends(get_db)):
    return tasks.get_task(s, current.user_id, task_id)


@app.put("/api/tasks/{task_id}", response_model=TaskOut)
def update_task(
    task_id: int,
    body: TaskIn,
    current: TokenUser = Depends(get_current_user),
    s: Session = Depends(get_db),
):
    return tasks.update_task(s, current.user_id, task_id, body.title, body.description, body.due_date, body.priority)


@app.delete("/api/tasks/{task_id}", response_model=MessageOut)
def delete_task(task_id: int, current: TokenUser = Depends(get_current_user), s: Session = Depends(get_db)):
    tasks.delete_task(s, current.user_id, task_id)
    return MessageOut(message="Task deleted successfully")


@app.patch("/api/tasks/{task_id}/complete", response_model=TaskOut)
def complete_task(task_id: int, current: TokenUser = Depends(get_current_user), s: Session = Depends(get_db)):
    return tasks.complete_task(s, current.user_id, task_id)


@app.patch("/api/tasks/{task_id}/reset", response_model=TaskOut)
def reset_task(task_id: int, current: TokenUser = Depends(get_current_user), s: Session = Depends(get_db)):
    return tasks.reset_task(s, current.user_id, task_id)
