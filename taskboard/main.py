import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Row
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .config import get_settings
from .db import get_session, init_db
from .models import Board, CardUser, TaskList, User
from .schemas import (
    BoardCreate,
    BoardOut,
    BoardWithAdminOut,
    CardCreate,
    CardCreatedOut,
    CardMemberCreate,
    CardMemberOut,
    CardOut,
    Health,
    ListCreate,
    ListOut,
    ListSummaryOut,
    UserCreate,
    UserOut,
    Version,
)
from .storage import AlreadyMember, AlreadyOwner, CardNotFound, Storage
from .utils import configure_logging

API_VERSION = "1.0.0"

# writes the database refused; reported as 422
WRITE_ERRORS = (IntegrityError, DataError)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(get_settings().log_level)
    init_db()
    yield


app = FastAPI(title="Taskboard API", version=API_VERSION, lifespan=lifespan)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "internal_error"})


# === Helpers ===


def get_storage(session: Session = Depends(get_session)) -> Storage:
    return Storage(session)


def user_out(user: User) -> UserOut:
    return UserOut(id=user.id, name=user.name, email=user.email)


def board_out(board: Board) -> BoardOut:
    return BoardOut(id=board.id, name=board.name)


def board_with_admin_out(row: Row) -> BoardWithAdminOut:
    return BoardWithAdminOut(id=row.id, name=row.name, adminUserId=row.admin_user_id)


def list_out(task_list: TaskList) -> ListOut:
    return ListOut(id=task_list.id, name=task_list.name, boardId=task_list.board_id)


def card_out(row: Row) -> CardOut:
    return CardOut(
        id=row.id,
        name=row.name,
        description=row.description,
        dueDate=row.due_date,
        isOwner=row.is_owner,
        ownerName=row.owner_name,
    )


def member_out(member: CardUser) -> CardMemberOut:
    return CardMemberOut(cardId=member.card_id, userId=member.user_id, isOwner=member.is_owner)


# === Health & metadata ===


@app.get("/health", response_model=Health)
def health():
    return Health()


@app.get("/version", response_model=Version)
def version():
    return Version(version=API_VERSION)


# === User endpoints ===


@app.get("/users", response_model=list[UserOut])
def list_users(storage: Storage = Depends(get_storage)):
    return [user_out(u) for u in storage.list_users()]


@app.post("/users", response_model=UserOut, status_code=201)
def create_user(payload: UserCreate, storage: Storage = Depends(get_storage)):
    try:
        user = storage.create_user(payload.name, payload.email)
    except WRITE_ERRORS:
        raise HTTPException(status_code=422, detail="unprocessable_entity")
    return user_out(user)


# === Board endpoints ===


@app.get("/boards", response_model=list[BoardWithAdminOut])
def list_boards(storage: Storage = Depends(get_storage)):
    return [board_with_admin_out(r) for r in storage.list_boards_with_admin()]


@app.post("/boards", response_model=BoardOut, status_code=201)
def create_board(payload: BoardCreate, storage: Storage = Depends(get_storage)):
    try:
        board = storage.create_board(payload.name, str(payload.adminUserId))
    except WRITE_ERRORS:
        raise HTTPException(status_code=422, detail="unprocessable_entity")
    return board_out(board)


# === List endpoints ===


@app.get("/boards/lists", response_model=list[ListSummaryOut])
def list_lists(
    board_id: Optional[str] = Query(default=None, alias="boardId"),
    storage: Storage = Depends(get_storage),
):
    if not board_id:
        raise HTTPException(status_code=400, detail="missing_board_id")
    return [ListSummaryOut(id=t.id, name=t.name) for t in storage.list_lists(board_id)]


@app.post("/boards/lists", response_model=ListOut, status_code=201)
def create_list(payload: ListCreate, storage: Storage = Depends(get_storage)):
    try:
        task_list = storage.create_list(payload.name, str(payload.boardId))
    except WRITE_ERRORS:
        raise HTTPException(status_code=422, detail="unprocessable_entity")
    return list_out(task_list)


# === Card endpoints ===


@app.get("/boards/lists/cards", response_model=list[CardOut])
def list_cards(
    list_id: Optional[str] = Query(default=None, alias="listId"),
    storage: Storage = Depends(get_storage),
):
    if not list_id:
        raise HTTPException(status_code=400, detail="missing_list_id")
    return [card_out(r) for r in storage.list_cards(list_id)]


@app.post("/boards/lists/cards", response_model=CardCreatedOut, status_code=201)
def create_card(payload: CardCreate, storage: Storage = Depends(get_storage)):
    try:
        card = storage.create_card(
            payload.name,
            payload.description,
            payload.dueDate,
            str(payload.listId),
            str(payload.ownerUserId),
        )
    except WRITE_ERRORS:
        raise HTTPException(status_code=422, detail="unprocessable_entity")
    return CardCreatedOut(cardId=card.id)


@app.post("/boards/lists/cards/members", response_model=CardMemberOut, status_code=201)
def add_card_member(payload: CardMemberCreate, storage: Storage = Depends(get_storage)):
    """Add a non-owner member to a card.

    404 unknown card, 403 user already owns it, 409 user already a member,
    422 unknown user; other database failures fall through to the 500 handler.
    """
    try:
        member = storage.add_card_member(str(payload.cardId), str(payload.userId))
    except CardNotFound:
        raise HTTPException(status_code=404, detail="card_not_found")
    except AlreadyOwner:
        raise HTTPException(status_code=403, detail="already_owner")
    except AlreadyMember:
        raise HTTPException(status_code=409, detail="already_member")
    except WRITE_ERRORS:
        raise HTTPException(status_code=422, detail="unprocessable_entity")
    return member_out(member)
