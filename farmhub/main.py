from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, status
from sqlalchemy.orm import Session

from farmhub import schemas
from farmhub.config import settings
from farmhub.db import Base, engine, get_db
from farmhub.deps import get_farm_service, get_user_service
from farmhub.errors import register_exception_handlers
from farmhub.farm_service import FarmService
from farmhub.logging_config import setup_logging
from farmhub.pagination import MAX_LIMIT, MAX_PAGE
from farmhub.security import require_auth
from farmhub.user_service import UserService

setup_logging(settings.log_level)

app = FastAPI(title=settings.project_name, version=settings.api_version)
register_exception_handlers(app)

# Every resource route requires a valid bearer token
users = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(require_auth)])
farms = APIRouter(prefix="/farms", tags=["farms"], dependencies=[Depends(require_auth)])

NOT_FOUND = {status.HTTP_404_NOT_FOUND: {"description": "Not found"}}
CONFLICT = {status.HTTP_409_CONFLICT: {"description": "Email or phone number already in use"}}


# Create tables at startup
@app.on_event("startup")
def _init_db():
    Base.metadata.create_all(bind=engine)


# ---------- users ----------

@users.get("", response_model=schemas.Page[schemas.UserOut], summary="List farmers")
def list_users(
    page: Optional[int] = Query(None, le=MAX_PAGE),
    limit: Optional[int] = Query(None, le=MAX_LIMIT),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    svc: UserService = Depends(get_user_service),
):
    """Paginated, newest first. `search` matches first/last name, email or phone number."""
    return svc.find_all(db, page, limit, search)


@users.post("", response_model=schemas.UserOut, status_code=status.HTTP_201_CREATED, responses=CONFLICT)
def create_user(
    payload: schemas.UserCreate,
    db: Session = Depends(get_db),
    svc: UserService = Depends(get_user_service),
):
    return svc.create(db, payload)


@users.get("/{user_id}", response_model=schemas.UserOut, responses=NOT_FOUND)
def get_user(user_id: str, db: Session = Depends(get_db), svc: UserService = Depends(get_user_service)):
    return svc.find_one(db, user_id)


@users.patch("/{user_id}", response_model=schemas.UserOut, responses={**NOT_FOUND, **CONFLICT})
def update_user(
    user_id: str,
    patch: schemas.UserUpdate,
    db: Session = Depends(get_db),
    svc: UserService = Depends(get_user_service),
):
    return svc.update(db, user_id, patch)


@users.delete("/{user_id}", response_model=schemas.Message, responses=NOT_FOUND)
def delete_user(user_id: str, db: Session = Depends(get_db), svc: UserService = Depends(get_user_service)):
    return svc.remove(db, user_id)


# ---------- farms ----------

@farms.post(
    "",
    response_model=schemas.FarmOut,
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_404_NOT_FOUND: {"description": "User not found"}},
)
def create_farm(
    payload: schemas.FarmCreate,
    db: Session = Depends(get_db),
    svc: FarmService = Depends(get_farm_service),
):
    """Requires `userId` to reference an existing user."""
    return svc.create(db, payload)


@farms.get("", response_model=schemas.Page[schemas.FarmOut], summary="List farms")
def list_farms(
    page: Optional[int] = Query(None, le=MAX_PAGE),
    limit: Optional[int] = Query(None, le=MAX_LIMIT),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    svc: FarmService = Depends(get_farm_service),
):
    """Paginated, newest first. `search` matches farm name, county or administrative location."""
    return svc.find_all(db, page, limit, search)


@farms.get("/{farm_id}", response_model=schemas.FarmOut, responses=NOT_FOUND)
def get_farm(farm_id: str, db: Session = Depends(get_db), svc: FarmService = Depends(get_farm_service)):
    return svc.find_one(db, farm_id)


@farms.patch("/{farm_id}", response_model=schemas.FarmOut, responses=NOT_FOUND)
def update_farm(
    farm_id: str,
    patch: schemas.FarmUpdate,
    db: Session = Depends(get_db),
    svc: FarmService = Depends(get_farm_service),
):
    return svc.update(db, farm_id, patch)


@farms.delete("/{farm_id}", response_model=schemas.Message, responses=NOT_FOUND)
def delete_farm(farm_id: str, db: Session = Depends(get_db), svc: FarmService = Depends(get_farm_service)):
    return svc.remove(db, farm_id)


app.include_router(users)
app.include_router(farms)
