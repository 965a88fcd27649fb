# scrumboard/main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from scrumboard.api.auth_github import router as github_auth_router
from scrumboard.api.classes import router as classes_router
from scrumboard.api.github_routes import router as github_routes_router
from scrumboard.api.sprints import router as sprints_router
from scrumboard.api.teacher import router as teacher_router
from scrumboard.api.teams import router as teams_router
from scrumboard.api.users import router as users_router
from scrumboard.core.config import settings
from scrumboard.core.db import Base, engine
from scrumboard.core.errors import ScrumboardError
from scrumboard.core.logging import configure_logging

import scrumboard.models  # noqa: F401  (registers tables on Base.metadata)

app = FastAPI(title="Scrumboard Backend")

# The session cookie is sent cross-origin by the frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type"],
)

for router in (
    github_auth_router,
    github_routes_router,
    users_router,
    classes_router,
    teams_router,
    sprints_router,
    teacher_router,
):
    app.include_router(router)


@app.on_event("startup")
def on_startup():
    configure_logging()
    # No migrations; tables are created when missing
    Base.metadata.create_all(bind=engine)


@app.exception_handler(ScrumboardError)
async def scrumboard_error_handler(request: Request, exc: ScrumboardError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/health")
async def health():
    return {"status": "ok"}
