"""
Game Session State Machine

The shared "gameSessions/active" document:

    (none) --create--> pending --join--> active --end--> (none)

Any state can be ended. Ending deletes the document; there is no
finished state and no history.

DESIGN DECISION: update() is the only mutation primitive for game play.
Every move is a partial merge of a few fields, and the last write to a
field wins. Each field is meaningful on its own, so two clients writing
at once leave a consistent document without locking.
"""

from typing import Any, Callable, Optional

from pydantic import ValidationError

from money_mates.audit import EventLogger
from money_mates.models.events import LedgerEventType
from money_mates.models.game import GameSession, GameStatus, GameType
from money_mates.models.ledger import ProfileId
from money_mates.services.storage import paths
from money_mates.services.storage.interface import (
    DocumentData,
    DocumentStore,
    DuplicateError,
    NotFoundError,
    Unsubscribe,
)


class GameError(Exception):
    """Base exception for game sessions."""
    pass


class InvalidTransitionError(GameError):
    """The session is not in a state that allows this transition."""
    pass


class GameValidationError(GameError):
    """An action was rejected locally; nothing was written."""
    pass


def _session_document(session: GameSession) -> DocumentData:
    return session.model_dump(mode="json", exclude={"id"})


def _parse_session(data: Optional[DocumentData]) -> Optional[GameSession]:
    if data is None:
        return None
    return GameSession.model_validate({**data, "id": "active"})


class GameSessionManager:
    """
    Lifecycle of the singleton game session.

    Usage:
        manager = GameSessionManager(store, event_logger)
        await manager.create(GameType.RPS, ProfileId.PEA)
        await manager.join(ProfileId.CAM)
        await manager.update(ProfileId.PEA, {"pea_choice": "rock"})
        await manager.end(ProfileId.CAM)
    """

    def __init__(
        self,
        store: DocumentStore,
        event_logger: Optional[EventLogger] = None,
    ):
        self._store = store
        self._event_logger = event_logger

    def _log(
        self,
        event_type: LedgerEventType,
        game_type: GameType,
        actor: ProfileId,
        details: Optional[dict] = None,
    ) -> None:
        if self._event_logger:
            self._event_logger.log_game_event(
                event_type=event_type,
                game_type=game_type.value,
                actor=ProfileId(actor).value,
                details=details,
            )

    async def current(self) -> Optional[GameSession]:
        return _parse_session(await self._store.get(paths.GAME_SESSION))

    async def create(self, game_type: GameType, initiator: ProfileId) -> GameSession:
        """
        Start a pending session with every variant's default payload.

        Raises:
            InvalidTransitionError: If a session already exists
        """
        session = GameSession(
            game_type=game_type,
            initiator=initiator,
        )
        try:
            await self._store.create(paths.GAME_SESSION, _session_document(session))
        except DuplicateError:
            raise InvalidTransitionError("A game is already in progress")

        self._log(LedgerEventType.GAME_CREATED, game_type, initiator)
        return session

    async def join(self, actor: ProfileId) -> GameSession:
        """
        Accept a pending invite. Only the non-initiator can join.

        Raises:
            InvalidTransitionError: If there is no pending session for actor
        """
        session = await self.current()
        if session is None:
            raise InvalidTransitionError("There is no game to join")
        if session.status is not GameStatus.PENDING:
            raise InvalidTransitionError("The game has already started")
        if session.initiator is ProfileId(actor):
            raise InvalidTransitionError("The initiator cannot join their own game")

        try:
            await self._store.update(paths.GAME_SESSION, {"status": GameStatus.ACTIVE.value})
        except NotFoundError:
            raise InvalidTransitionError("The game ended before it could be joined")

        self._log(LedgerEventType.GAME_JOINED, session.game_type, actor)
        return session.model_copy(update={"status": GameStatus.ACTIVE})

    async def update(self, actor: ProfileId, updates: dict[str, Any]) -> GameSession:
        """
        Merge a partial payload into the session.

        Either player may update an active session; only the initiator
        may update a pending one (to prepare it before the partner
        joins). Values are validated against the session model and only
        the given fields are written.

        Raises:
            GameValidationError: For unknown fields or invalid values
            InvalidTransitionError: If actor may not update right now
        """
        unknown = set(updates) - (GameSession.payload_fields() - {"status"})
        if unknown:
            raise GameValidationError(
                f"Not a game payload field: {', '.join(sorted(unknown))}"
            )

        session = await self.current()
        if session is None:
            raise InvalidTransitionError("There is no game in progress")
        if session.status is GameStatus.PENDING and session.initiator is not ProfileId(actor):
            raise InvalidTransitionError("Join the game before playing")

        try:
            updated = GameSession.model_validate({**session.model_dump(), **updates})
        except ValidationError as e:
            raise GameValidationError(str(e)) from e

        document = _session_document(updated)
        try:
            await self._store.update(
                paths.GAME_SESSION,
                {field: document[field] for field in updates},
            )
        except NotFoundError:
            raise InvalidTransitionError("The game has ended")

        self._log(
            LedgerEventType.GAME_UPDATED,
            session.game_type,
            actor,
            details={"fields": sorted(updates)},
        )
        return updated

    async def end(self, actor: ProfileId) -> None:
        """Delete the session. Ending when none exists does nothing."""
        session = await self.current()
        await self._store.delete(paths.GAME_SESSION)
        if session is not None:
            self._log(LedgerEventType.GAME_ENDED, session.game_type, actor)

    async def subscribe(
        self,
        listener: Callable[[Optional[GameSession]], None],
    ) -> Unsubscribe:
        return await self._store.subscribe_document(
            paths.GAME_SESSION,
            lambda data: listener(_parse_session(data)),
        )


def pending_invite_for(
    session: Optional[GameSession],
    profile_id: ProfileId,
) -> Optional[GameSession]:
    """The session if it is an invite waiting on this profile."""
    if session is not None and session.is_pending_invite_for(profile_id):
        return session
    return None
