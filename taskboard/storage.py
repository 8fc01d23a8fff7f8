from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.engine import Row
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .db import transaction
from .models import Board, BoardUser, Card, CardUser, TaskList, User
from .utils import new_uuid, now_utc

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


class CardNotFound(StorageError):
    def __init__(self, card_id: str) -> None:
        super().__init__(f"card {card_id} not found")
        self.card_id = card_id


class AlreadyOwner(StorageError):
    def __init__(self, card_id: str, user_id: str) -> None:
        super().__init__(f"user {user_id} already owns card {card_id}")
        self.card_id = card_id
        self.user_id = user_id


class AlreadyMember(StorageError):
    def __init__(self, card_id: str, user_id: str) -> None:
        super().__init__(f"user {user_id} is already a member of card {card_id}")
        self.card_id = card_id
        self.user_id = user_id


class Storage:
    """SQL-backed store for users, boards, lists and cards.

    One instance wraps one request-scoped session. Every write goes through
    ``transaction`` so multi-row inserts are all-or-nothing.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    # === User operations ===
    def list_users(self) -> list[User]:
        return list(self.session.scalars(select(User)))

    def create_user(self, name: str, email: str) -> User:
        user = User(id=new_uuid(), name=name, email=email)
        with transaction(self.session):
            self.session.add(user)
        logger.info("Created user %s", user.id)
        return user

    # === Board operations ===
    def list_boards_with_admin(self) -> list[Row]:
        stmt = (
            select(Board.id, Board.name, BoardUser.user_id.label("admin_user_id"))
            .join(BoardUser, BoardUser.board_id == Board.id)
            .where(BoardUser.is_admin.is_(True))
        )
        return list(self.session.execute(stmt).all())

    def create_board(self, name: str, admin_user_id: str) -> Board:
        board = Board(id=new_uuid(), name=name)
        with transaction(self.session):
            self.session.add(board)
            self.session.flush()
            self.session.add(
                BoardUser(board_id=board.id, user_id=admin_user_id, is_admin=True)
            )
            self.session.flush()
        logger.info("Created board %s with admin %s", board.id, admin_user_id)
        return board

    # === List operations ===
    def list_lists(self, board_id: str) -> list[TaskList]:
        stmt = select(TaskList).where(TaskList.board_id == board_id)
        return list(self.session.scalars(stmt))

    def create_list(self, name: str, board_id: str) -> TaskList:
        task_list = TaskList(id=new_uuid(), name=name, board_id=board_id)
        with transaction(self.session):
            self.session.add(task_list)
        logger.info("Created list %s on board %s", task_list.id, board_id)
        return task_list

    # === Card operations ===
    def list_cards(self, list_id: str) -> list[Row]:
        stmt = (
            select(
                Card.id,
                Card.name,
                Card.description,
                Card.due_date,
                CardUser.is_owner,
                User.name.label("owner_name"),
            )
            .join(CardUser, CardUser.card_id == Card.id)
            .join(User, User.id == CardUser.user_id)
            .where(Card.list_id == list_id, CardUser.is_owner.is_(True))
        )
        return list(self.session.execute(stmt).all())

    def create_card(
        self,
        name: str,
        description: str,
        due_date: Optional[datetime],
        list_id: str,
        owner_user_id: str,
    ) -> Card:
        card = Card(
            id=new_uuid(),
            name=name,
            description=description,
            due_date=_to_utc(due_date) if due_date else now_utc(),
            list_id=list_id,
        )
        with transaction(self.session):
            self.session.add(card)
            self.session.flush()
            self.session.add(
                CardUser(card_id=card.id, user_id=owner_user_id, is_owner=True)
            )
            self.session.flush()
        logger.info("Created card %s owned by %s", card.id, owner_user_id)
        return card

    def add_card_member(self, card_id: str, user_id: str) -> CardUser:
        """Add ``user_id`` to a card as a plain (non-owner) member.

        Raises ``CardNotFound`` for an unknown card, ``AlreadyOwner`` when the
        user owns the card and ``AlreadyMember`` when they already joined it.
        A concurrent insert that slips past the check trips the primary key
        or the owner index on ``card_users`` and is reported the same way.
        """
        member = CardUser(card_id=card_id, user_id=user_id, is_owner=False)
        try:
            with transaction(self.session):
                if self.session.get(Card, card_id) is None:
                    raise CardNotFound(card_id)
                self._check_not_member(card_id, user_id)
                self.session.add(member)
                self.session.flush()
        except IntegrityError:
            self._check_not_member(card_id, user_id)
            raise
        logger.info("Added user %s to card %s", user_id, card_id)
        return member

    def _check_not_member(self, card_id: str, user_id: str) -> None:
        existing = self.session.scalar(
            select(CardUser).where(
                CardUser.card_id == card_id, CardUser.user_id == user_id
            )
        )
        if existing is None:
            return
        if existing.is_owner:
            raise AlreadyOwner(card_id, user_id)
        raise AlreadyMember(card_id, user_id)


def _to_utc(value: datetime) -> datetime:
    # naive input is taken as UTC already
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc)
