"""FastAPI backend for the establishment graph."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from establishment.auth import AuthService
from establishment.config import Settings, settings as default_settings
from establishment.errors import (
    AlreadyExistsError,
    EndpointNotFoundError,
    EstablishmentError,
    InvalidCredentialsError,
    InvalidRelationshipError,
    NoSessionError,
    NotFoundError,
    SessionExpiredError,
    StoreError,
    ValidationError,
)
from establishment.graph import PoliticalGraph
from establishment.logging_config import get_logger
from establishment.models import Graph, Person, PublicUser, Relationship
from establishment.store import BackingStore, open_store

logger = get_logger(__name__)

# First match wins, so subclasses come before their bases.
ERROR_STATUS = [
    (NotFoundError, 404),
    (EndpointNotFoundError, 404),
    (AlreadyExistsError, 409),
    (InvalidRelationshipError, 400),
    (ValidationError, 400),
    (InvalidCredentialsError, 401),
    (NoSessionError, 401),
    (SessionExpiredError, 401),
    (StoreError, 500),
]


class RegisterRequest(BaseModel):
    login: str
    email: str
    password: str


class LoginRequest(BaseModel):
    login: str
    password: str


class LoginResponse(BaseModel):
    login: str
    expires_at: int


router = APIRouter()


# ─────────────────────────────────────────
# Dependencies
# ─────────────────────────────────────────

def get_graph(request: Request) -> PoliticalGraph:
    return request.app.state.graph


def get_auth(request: Request) -> AuthService:
    return request.app.state.auth


def session_token(request: Request) -> Optional[str]:
    return request.cookies.get(request.app.state.settings.auth.cookie_name)


def require_user(token: Optional[str] = Depends(session_token),
                 auth: AuthService = Depends(get_auth)) -> PublicUser:
    return auth.require_auth(token)


# ─────────────────────────────────────────
# Graph routes
# ─────────────────────────────────────────

@router.get("/person/{person_id}", response_model=Person)
def get_person(person_id: str, graph: PoliticalGraph = Depends(get_graph)):
    return graph.get_person(person_id)


@router.post("/person", status_code=201)
def create_person(person: Person,
                  user: PublicUser = Depends(require_user),
                  graph: PoliticalGraph = Depends(get_graph)):
    graph.add_person(person)
    logger.info(f'Person {person.id} created by {user.login}')
    return {"success": True}


@router.get("/persons", response_model=list[Person])
def list_persons(graph: PoliticalGraph = Depends(get_graph)):
    return list(graph.list_persons())


@router.post("/relationship", status_code=201)
def create_relationship(rel: Relationship,
                        user: PublicUser = Depends(require_user),
                        graph: PoliticalGraph = Depends(get_graph)):
    graph.add_relationship(rel.source_id, rel.target_id, rel.type, rel.details)
    logger.info(f'Relationship {rel.source_id} -> {rel.target_id} ({rel.type.value}) created by {user.login}')
    return {"success": True}


@router.get("/graph", response_model=Graph)
def get_graph_view(graph: PoliticalGraph = Depends(get_graph)):
    return graph.get_graph()


# ─────────────────────────────────────────
# Auth routes
# ─────────────────────────────────────────

@router.post("/register", status_code=201)
def register(req: RegisterRequest, auth: AuthService = Depends(get_auth)):
    auth.register(req.login, req.email, req.password)
    return {"success": True}


@router.post("/login", response_model=LoginResponse)
def login(req: LoginRequest, request: Request, response: Response,
          auth: AuthService = Depends(get_auth)):
    session = auth.login(req.login, req.password)
    cookie = request.app.state.settings.auth
    response.set_cookie(
        key=cookie.cookie_name,
        value=session.id,
        max_age=cookie.session_ttl_seconds,
        path="/",
        httponly=True,
        samesite="lax",
        secure=cookie.cookie_secure,
    )
    return LoginResponse(login=req.login, expires_at=session.expires_at)


@router.post("/logout")
def logout(request: Request, response: Response,
           token: Optional[str] = Depends(session_token),
           auth: AuthService = Depends(get_auth)):
    auth.logout(token)
    cookie = request.app.state.settings.auth
    response.delete_cookie(
        key=cookie.cookie_name,
        path="/",
        httponly=True,
        samesite="lax",
        secure=cookie.cookie_secure,
    )
    return {"success": True}


@router.get("/check-session", response_model=PublicUser)
def check_session(token: Optional[str] = Depends(session_token),
                  auth: AuthService = Depends(get_auth)):
    return auth.check_session(token)


# ─────────────────────────────────────────
# Error mapping
# ─────────────────────────────────────────

def _status_for(error: EstablishmentError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


async def handle_domain_error(request: Request, exc: EstablishmentError) -> JSONResponse:
    status = _status_for(exc)
    if status >= 500:
        logger.error(f'{request.method} {request.url.path} failed: {exc}')
        return JSONResponse(status_code=status, content={"detail": "Internal server error"})
    logger.info(f'{request.method} {request.url.path} -> {status}: {exc}')
    return JSONResponse(status_code=status, content={"detail": str(exc)})


async def handle_invalid_input(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(part) for part in error["loc"]) for error in exc.errors()]
    logger.info(f'Invalid input data in {request.method} {request.url.path}: {fields}')
    return JSONResponse(status_code=400, content={"detail": "Invalid input data", "fields": fields})


# ─────────────────────────────────────────
# Application factory
# ─────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store (unless one was injected) and build the services over it."""
    if app.state.store is None:
        app.state.store = open_store(app.state.settings)
    store = app.state.store

    app.state.graph = PoliticalGraph(store)
    app.state.auth = AuthService(store, app.state.settings.auth)
    logger.info(f'Server ready with {type(store).__name__}')
    try:
        yield
    finally:
        store.close()
        logger.info('Store closed')


def create_app(config: Optional[Settings] = None, store: Optional[BackingStore] = None) -> FastAPI:
    """
    Build the API.

    Args:
        config: settings, the module default if None
        store: an already prepared store (schema installed); opened from
            config at startup if None
    """
    config = config or default_settings

    app = FastAPI(title="Establishment Graph API", lifespan=lifespan)
    app.state.settings = config
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    app.add_exception_handler(EstablishmentError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_invalid_input)
    app.include_router(router)

    static_dir = Path(config.server.static_dir)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")

    return app


app = create_app()
