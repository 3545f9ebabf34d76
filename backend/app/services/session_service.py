import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from app.core.exceptions import (
    SagaError,
    SessionForbiddenError,
    SessionFullError,
    SessionNotFoundError,
    SessionStateError,
    SessionValidationError,
)
from app.models.session import Difficulty, SessionStatus, new_call_id
from app.models.session import Session as SessionModel
from app.models.user import User
from app.services.base import MessagingGateway
from app.services.saga import Saga, SagaReport, run_best_effort

logger = logging.getLogger(__name__)

SESSION_ENDED_MESSAGE = "Session ended successfully"


class SessionService:
    """Coordinates session rows with their video call and chat channel.

    The row, the call and the channel share ``call_id``. Creation runs as a
    saga so a partial failure leaves none of the three behind; ending deletes
    the external resources best-effort and then flips the row, which stays
    the system of record.
    """

    def __init__(self, db: Session, gateway: MessagingGateway, list_limit: int = 20):
        self.db = db
        self.gateway = gateway
        self.list_limit = list_limit

    def _query(self):
        return self.db.query(SessionModel).options(
            joinedload(SessionModel.host),
            joinedload(SessionModel.participant),
        )

    def _find(self, session_id: str) -> SessionModel | None:
        return self._query().filter(SessionModel.id == session_id).first()

    # Reads

    def list_active_sessions(self) -> list[SessionModel]:
        """Newest active sessions, host and participant loaded."""
        return (
            self._query()
            .filter(SessionModel.status == SessionStatus.ACTIVE)
            .order_by(SessionModel.created_at.desc())
            .limit(self.list_limit)
            .all()
        )

    def list_my_recent_sessions(self, user: User) -> list[SessionModel]:
        """Newest completed sessions the user hosted or joined."""
        return (
            self._query()
            .filter(
                SessionModel.status == SessionStatus.COMPLETED,
                or_(SessionModel.host_id == user.id, SessionModel.participant_id == user.id),
            )
            .order_by(SessionModel.created_at.desc())
            .limit(self.list_limit)
            .all()
        )

    def get_session(self, session_id: str) -> SessionModel:
        session = self._find(session_id)
        if session is None:
            raise SessionNotFoundError()
        return session

    # Lifecycle

    async def create_session(self, user: User, problem: str | None, difficulty: str | None) -> SessionModel:
        """Create the row, the video call and the chat channel.

        Raises:
            SessionValidationError: missing problem/difficulty or unknown difficulty.
            SagaError: a step failed; everything started has been compensated.
        """
        if not problem or not difficulty:
            raise SessionValidationError("Problem and difficulty are required")
        try:
            level = Difficulty(difficulty.lower())
        except ValueError as e:
            allowed = ", ".join(d.value for d in Difficulty)
            raise SessionValidationError(f"Difficulty must be one of: {allowed}") from e

        # Generated before any side effect so every compensation can find its target.
        call_id = new_call_id()
        created: dict[str, SessionModel] = {}

        async def insert_row():
            row = SessionModel(
                problem=problem,
                difficulty=level,
                host_id=user.id,
                participant_id=None,
                status=SessionStatus.ACTIVE,
                call_id=call_id,
            )
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            created["session"] = row

        async def delete_row():
            self.db.rollback()
            self.db.query(SessionModel).filter(SessionModel.call_id == call_id).delete(
                synchronize_session=False
            )
            self.db.commit()

        async def create_call():
            await self.gateway.create_call(
                call_id,
                created_by_id=user.external_id,
                custom={
                    "problem": problem,
                    "difficulty": level.value,
                    "sessionId": created["session"].id,
                },
            )

        async def delete_call():
            await self.gateway.delete_call(call_id, hard=True)

        async def create_channel():
            await self.gateway.create_channel(
                call_id,
                name=f"{problem} Session",
                created_by_id=user.external_id,
                members=[user.external_id],
            )

        async def delete_channel():
            await self.gateway.delete_channel(call_id)

        saga = (
            Saga("create_session")
            .add_step("insert_session_row", insert_row, delete_row)
            .add_step("create_video_call", create_call, delete_call)
            .add_step("create_chat_channel", create_channel, delete_channel)
        )
        try:
            await saga.run()
        except SagaError as e:
            logger.error(f"createSession rolled back for {call_id}: {e.report.to_dict()}")
            raise

        logger.info(f"Session {created['session'].id} created by user {user.id} ({call_id})")
        return self.get_session(created["session"].id)

    async def join_session(self, session_id: str, user: User) -> SessionModel:
        """Add the user as the session's single participant.

        The chat member is added before the row is written, and the row is
        written with a conditional update so only one concurrent joiner wins;
        the loser's chat membership is removed again. A repeated join by the
        user who won succeeds without touching the channel.
        """
        session = self._find(session_id)
        if session is None:
            raise SessionNotFoundError()
        if session.status != SessionStatus.ACTIVE:
            raise SessionStateError("Cannot join a completed session")
        if session.host_id == user.id:
            raise SessionStateError("Host cannot join their own session as participant")
        if session.participant_id is not None:
            raise SessionFullError()

        call_id = session.call_id

        async def add_member():
            await self.gateway.add_channel_members(call_id, [user.external_id])

        async def remove_member():
            await self.gateway.remove_channel_members(call_id, [user.external_id])

        async def claim_seat():
            updated = (
                self.db.query(SessionModel)
                .filter(
                    SessionModel.id == session_id,
                    SessionModel.participant_id.is_(None),
                    SessionModel.status == SessionStatus.ACTIVE,
                )
                .update({SessionModel.participant_id: user.id}, synchronize_session=False)
            )
            self.db.commit()
            if updated == 0:
                # A duplicate request from the same user already holds the seat;
                # keep its chat membership.
                holder = (
                    self.db.query(SessionModel.participant_id)
                    .filter(SessionModel.id == session_id)
                    .scalar()
                )
                if holder != user.id:
                    raise SessionFullError()
                logger.info(f"User {user.id} already holds the seat in session {session_id}")

        saga = (
            Saga("join_session")
            .add_step("add_chat_member", add_member, remove_member)
            .add_step("claim_participant_seat", claim_seat)
        )
        try:
            await saga.run()
        except SagaError as e:
            self.db.rollback()
            if isinstance(e.__cause__, SessionFullError):
                self.db.expire_all()
                latest = self._find(session_id)
                if latest is not None and latest.status != SessionStatus.ACTIVE:
                    raise SessionStateError("Cannot join a completed session") from e
                raise SessionFullError() from e
            raise

        self.db.expire_all()
        logger.info(f"User {user.id} joined session {session_id}")
        return self.get_session(session_id)

    async def end_session(self, session_id: str, user: User) -> tuple[SessionModel, SagaReport]:
        """Tear down the call and channel, then mark the session completed.

        External deletions are best-effort; the status flip always runs after
        them and is the authoritative step.

        Returns:
            (session, cleanup report)
        """
        session = self._find(session_id)
        if session is None:
            raise SessionNotFoundError()
        if session.host_id != user.id:
            raise SessionForbiddenError("Only the host can end the session")
        if session.status == SessionStatus.COMPLETED:
            raise SessionStateError("Session is already completed")

        call_id = session.call_id
        cleanup = await run_best_effort(
            "end_session",
            [
                ("delete_video_call", lambda: self.gateway.delete_call(call_id, hard=True)),
                ("delete_chat_channel", lambda: self.gateway.delete_channel(call_id)),
            ],
        )
        if cleanup.failed_actions:
            logger.warning(
                f"Session {session_id} ended with stale external resources: {cleanup.to_dict()}"
            )

        updated = (
            self.db.query(SessionModel)
            .filter(SessionModel.id == session_id, SessionModel.status == SessionStatus.ACTIVE)
            .update({SessionModel.status: SessionStatus.COMPLETED}, synchronize_session=False)
        )
        self.db.commit()
        if updated == 0:
            raise SessionStateError("Session is already completed")

        self.db.expire_all()
        logger.info(f"Session {session_id} ended by host {user.id}")
        return self.get_session(session_id), cleanup
