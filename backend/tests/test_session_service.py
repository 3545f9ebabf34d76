"""Session lifecycle tests against the service layer."""
import re

import pytest

from app.core.exceptions import (
    SagaError,
    SessionForbiddenError,
    SessionFullError,
    SessionNotFoundError,
    SessionStateError,
    SessionValidationError,
)
from app.database import utcnow
from app.models.session import Session as SessionModel
from app.models.session import SessionStatus
from app.services.session_service import SessionService

CALL_ID_PATTERN = re.compile(
    r"^session_[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$"
)


@pytest.fixture
def service(db, gateway):
    return SessionService(db, gateway)


class TestCreateSession:

    @pytest.mark.asyncio
    async def test_creates_row_call_and_channel(self, service, gateway, host):
        session = await service.create_session(host, "Two Sum", "easy")

        assert CALL_ID_PATTERN.match(session.call_id)
        assert session.status == SessionStatus.ACTIVE
        assert session.participant_id is None
        assert session.host.external_id == "user_host"

        assert gateway.operations() == ["create_call", "create_channel"]
        call = gateway.calls[session.call_id]
        assert call["created_by_id"] == "user_host"
        assert call["custom"] == {"problem": "Two Sum", "difficulty": "easy", "sessionId": session.id}
        channel = gateway.channels[session.call_id]
        assert channel["name"] == "Two Sum Session"
        assert channel["members"] == ["user_host"]

    @pytest.mark.asyncio
    async def test_every_session_gets_its_own_call_id(self, service, host):
        first = await service.create_session(host, "Two Sum", "easy")
        second = await service.create_session(host, "Two Sum", "easy")
        assert first.call_id != second.call_id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("problem,difficulty", [("", "easy"), ("Two Sum", None), (None, None)])
    async def test_missing_fields_are_rejected_without_side_effects(
        self, service, gateway, db, host, problem, difficulty
    ):
        with pytest.raises(SessionValidationError, match="Problem and difficulty are required"):
            await service.create_session(host, problem, difficulty)
        assert gateway.log == []
        assert db.query(SessionModel).count() == 0

    @pytest.mark.asyncio
    async def test_unknown_difficulty_is_rejected(self, service, host):
        with pytest.raises(SessionValidationError, match="Difficulty must be one of"):
            await service.create_session(host, "Two Sum", "impossible")

    @pytest.mark.asyncio
    async def test_call_failure_rolls_back_row(self, service, gateway, db, host):
        gateway.fail.add("create_call")

        with pytest.raises(SagaError) as exc_info:
            await service.create_session(host, "Two Sum", "easy")

        assert db.query(SessionModel).count() == 0
        assert "create_channel" not in gateway.operations()
        compensations = [o.name for o in exc_info.value.report.compensations]
        assert compensations == ["create_video_call", "insert_session_row"]

    @pytest.mark.asyncio
    async def test_channel_failure_rolls_back_everything(self, service, gateway, db, host):
        gateway.fail.add("create_channel")

        with pytest.raises(SagaError):
            await service.create_session(host, "Two Sum", "easy")

        assert db.query(SessionModel).count() == 0
        assert gateway.calls == {}
        assert gateway.operations()[-2:] == ["delete_channel", "delete_call"]

    @pytest.mark.asyncio
    async def test_failed_compensation_still_removes_row(self, service, gateway, db, host):
        gateway.fail.update({"create_channel", "delete_call", "delete_channel"})

        with pytest.raises(SagaError) as exc_info:
            await service.create_session(host, "Two Sum", "easy")

        assert db.query(SessionModel).count() == 0
        failed = [o.name for o in exc_info.value.report.failed_compensations]
        assert failed == ["create_chat_channel", "create_video_call"]


class TestJoinSession:

    @pytest.mark.asyncio
    async def test_join_sets_participant_after_channel_member(self, service, gateway, host, guest):
        session = await service.create_session(host, "Two Sum", "easy")

        joined = await service.join_session(session.id, guest)

        assert joined.participant_id == guest.id
        assert joined.participant.external_id == "user_guest"
        assert gateway.channels[session.call_id]["members"] == ["user_host", "user_guest"]

    @pytest.mark.asyncio
    async def test_missing_session(self, service, guest):
        with pytest.raises(SessionNotFoundError):
            await service.join_session("nope", guest)

    @pytest.mark.asyncio
    async def test_host_cannot_join_own_session(self, service, db, host):
        session = await service.create_session(host, "Two Sum", "easy")

        with pytest.raises(SessionStateError, match="Host cannot join"):
            await service.join_session(session.id, host)

        db.expire_all()
        assert db.get(SessionModel, session.id).participant_id is None

    @pytest.mark.asyncio
    async def test_full_session(self, service, host, guest, third):
        session = await service.create_session(host, "Two Sum", "easy")
        await service.join_session(session.id, guest)

        with pytest.raises(SessionFullError):
            await service.join_session(session.id, third)

    @pytest.mark.asyncio
    async def test_completed_session_checked_before_host(self, service, host):
        session = await service.create_session(host, "Two Sum", "easy")
        await service.end_session(session.id, host)

        with pytest.raises(SessionStateError, match="Cannot join a completed session"):
            await service.join_session(session.id, host)

    @pytest.mark.asyncio
    async def test_channel_failure_leaves_no_participant(self, service, gateway, db, host, guest):
        session = await service.create_session(host, "Two Sum", "easy")
        gateway.fail.add("add_channel_members")

        with pytest.raises(SagaError):
            await service.join_session(session.id, guest)

        db.expire_all()
        assert db.get(SessionModel, session.id).participant_id is None

    @pytest.mark.asyncio
    async def test_concurrent_joiner_loses_and_leaves_channel(self, service, gateway, db, host, guest, third):
        session = await service.create_session(host, "Two Sum", "easy")

        def other_joiner_wins():
            db.query(SessionModel).filter(SessionModel.id == session.id).update(
                {SessionModel.participant_id: third.id}, synchronize_session=False
            )
            db.commit()

        gateway.hooks["add_channel_members"] = other_joiner_wins

        with pytest.raises(SessionFullError):
            await service.join_session(session.id, guest)

        db.expire_all()
        assert db.get(SessionModel, session.id).participant_id == third.id
        assert ("remove_channel_members", session.call_id, ("user_guest",)) in gateway.log

    @pytest.mark.asyncio
    async def test_duplicate_join_by_seat_holder_keeps_membership(self, service, gateway, db, host, guest):
        session = await service.create_session(host, "Two Sum", "easy")

        def same_user_wins_first():
            db.query(SessionModel).filter(SessionModel.id == session.id).update(
                {SessionModel.participant_id: guest.id}, synchronize_session=False
            )
            db.commit()

        gateway.hooks["add_channel_members"] = same_user_wins_first

        joined = await service.join_session(session.id, guest)

        assert joined.participant_id == guest.id
        assert "user_guest" in gateway.channels[session.call_id]["members"]
        assert "remove_channel_members" not in gateway.operations()


class TestEndSession:

    @pytest.mark.asyncio
    async def test_end_deletes_resources_then_completes(self, service, gateway, host):
        session = await service.create_session(host, "Two Sum", "easy")

        ended, cleanup = await service.end_session(session.id, host)

        assert ended.status == SessionStatus.COMPLETED
        assert cleanup.succeeded
        assert gateway.calls == {}
        assert gateway.channels == {}
        assert ("delete_call", session.call_id, True) in gateway.log

    @pytest.mark.asyncio
    async def test_end_moves_updated_at_forward(self, service, host):
        before = utcnow()
        session = await service.create_session(host, "Two Sum", "easy")
        created_at = session.created_at

        ended, _ = await service.end_session(session.id, host)

        assert before <= created_at <= ended.updated_at
        assert ended.created_at == created_at

    @pytest.mark.asyncio
    async def test_non_host_is_forbidden(self, service, db, host, guest):
        session = await service.create_session(host, "Two Sum", "easy")

        with pytest.raises(SessionForbiddenError):
            await service.end_session(session.id, guest)

        db.expire_all()
        assert db.get(SessionModel, session.id).status == SessionStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_external_failures_do_not_block_completion(self, service, gateway, host):
        session = await service.create_session(host, "Two Sum", "easy")
        gateway.fail.update({"delete_call", "delete_channel"})

        ended, cleanup = await service.end_session(session.id, host)

        assert ended.status == SessionStatus.COMPLETED
        assert [o.name for o in cleanup.failed_actions] == ["delete_video_call", "delete_chat_channel"]

    @pytest.mark.asyncio
    async def test_second_end_is_rejected(self, service, host):
        session = await service.create_session(host, "Two Sum", "easy")
        await service.end_session(session.id, host)

        with pytest.raises(SessionStateError, match="already completed"):
            await service.end_session(session.id, host)

    @pytest.mark.asyncio
    async def test_concurrent_end_transitions_once(self, service, gateway, db, host):
        session = await service.create_session(host, "Two Sum", "easy")

        def other_end_finishes_first():
            db.query(SessionModel).filter(SessionModel.id == session.id).update(
                {SessionModel.status: SessionStatus.COMPLETED}, synchronize_session=False
            )
            db.commit()

        gateway.hooks["delete_channel"] = other_end_finishes_first

        with pytest.raises(SessionStateError, match="already completed"):
            await service.end_session(session.id, host)

    @pytest.mark.asyncio
    async def test_missing_session(self, service, host):
        with pytest.raises(SessionNotFoundError):
            await service.end_session("nope", host)


class TestListSessions:

    @pytest.mark.asyncio
    async def test_active_sessions_newest_first_and_limited(self, db, gateway, host):
        service = SessionService(db, gateway, list_limit=2)
        first = await service.create_session(host, "One", "easy")
        second = await service.create_session(host, "Two", "medium")
        third = await service.create_session(host, "Three", "hard")
        await service.end_session(first.id, host)

        active = service.list_active_sessions()

        assert [s.id for s in active] == [third.id, second.id]
        assert active[0].host.email == "user_host@example.com"

    @pytest.mark.asyncio
    async def test_my_recent_sessions_include_hosted_and_joined(self, service, host, guest, third):
        hosted = await service.create_session(guest, "Hosted", "easy")
        joined = await service.create_session(host, "Joined", "easy")
        unrelated = await service.create_session(host, "Unrelated", "easy")
        still_active = await service.create_session(guest, "Active", "easy")
        await service.join_session(joined.id, guest)
        await service.join_session(unrelated.id, third)
        for session, owner in ((hosted, guest), (joined, host), (unrelated, host)):
            await service.end_session(session.id, owner)

        mine = service.list_my_recent_sessions(guest)

        assert [s.id for s in mine] == [joined.id, hosted.id]
        assert still_active.id not in [s.id for s in mine]

    @pytest.mark.asyncio
    async def test_get_session_not_found(self, service):
        with pytest.raises(SessionNotFoundError):
            service.get_session("missing")
