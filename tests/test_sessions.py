import asyncio
from datetime import timedelta

import pytest

from focuspods.core.exceptions import (
    SessionAlreadyActive, SessionAlreadyCompleted, SessionNotActive, SessionNotFound, UserNotFound,
    ValidationError,
)
from focuspods.core.models import FocusSession, NotificationType, SessionStatus, TaskAction
from focuspods.services.sessions import CompletionResult
from focuspods.services.timers import session_timer_key
from focuspods.utils.datetime_utils import RemainingTime


class TestStart:

    async def test_creates_running_session(self, engine, make_user, timers, clock):
        user = make_user()

        session = await engine.sessions.start(user.user_id, 25)

        assert session.status == SessionStatus.RUNNING
        assert session.start_time == clock.now()
        assert session.is_solo
        assert timers.is_armed(session_timer_key(session.session_id))
        assert engine.store.get_user(user.user_id).current_streak == 1

    async def test_default_duration(self, engine, make_user):
        user = make_user()
        session = await engine.sessions.start(user.user_id)
        assert session.duration_minutes == 25

    async def test_second_open_session_rejected(self, engine, make_user):
        user = make_user()
        first = await engine.sessions.start(user.user_id, 25)

        with pytest.raises(SessionAlreadyActive) as exc_info:
            await engine.sessions.start(user.user_id, 25)

        assert exc_info.value.session_id == first.session_id
        assert len(engine.store.get_open_sessions(user.user_id)) == 1

    async def test_unknown_user(self, engine):
        with pytest.raises(UserNotFound):
            await engine.sessions.start("missing", 25)

    @pytest.mark.parametrize("duration", [0, -5, 181])
    async def test_invalid_duration(self, engine, make_user, duration):
        user = make_user()
        with pytest.raises(ValidationError):
            await engine.sessions.start(user.user_id, duration)


class TestComplete:

    async def test_full_session_is_rewarded(self, engine, make_user, timers):
        user = make_user()
        session = await engine.sessions.start(user.user_id, 25)
        await timers.advance(minutes=26)

        result = await engine.sessions.complete(session.session_id)

        stored = engine.store.get_user(user.user_id)
        assert result.rewarded
        assert result.reward > 0
        assert result.actual_minutes == 26
        assert result.session.status == SessionStatus.COMPLETED
        assert result.session.reward == result.reward
        assert stored.total_pomodoros == 1
        assert stored.total_focus_minutes == 26
        assert "first_focus" in result.achievements
        assert engine.stats.get(user.user_id).today_pomodoros == 1

    async def test_early_completion_below_threshold(self, engine, make_user, timers):
        user = make_user()
        session = await engine.sessions.start(user.user_id, 25)
        await timers.advance(minutes=5)

        result = await engine.sessions.complete(session.session_id, early=True)

        stored = engine.store.get_user(user.user_id)
        assert result.reward == 0
        assert not result.rewarded
        assert stored.total_focus_minutes == 5
        assert stored.total_pomodoros == 0
        assert stored.focus_coins == 0
        assert engine.store.get_user_stats(user.user_id) is None

    async def test_early_completion_above_threshold(self, engine, make_user, timers):
        user = make_user()
        session = await engine.sessions.start(user.user_id, 25)
        await timers.advance(minutes=23)

        result = await engine.sessions.complete(session.session_id, early=True)

        assert result.rewarded
        assert engine.store.get_user(user.user_id).total_pomodoros == 1

    async def test_pod_session_gets_pod_bonus(self, engine, make_user, timers):
        user = make_user()
        session = await engine.sessions.start(user.user_id, 25, pod_id="pod-1")
        await timers.advance(minutes=25)

        result = await engine.sessions.complete(session.session_id)

        assert result.reward == 2

    async def test_records_task_action(self, engine, make_user, timers):
        user = make_user()
        session = await engine.sessions.start(user.user_id, 25)
        await timers.advance(minutes=25)

        result = await engine.sessions.complete(session.session_id, task_action="postponed")

        assert result.session.task_action == TaskAction.POSTPONED

    async def test_second_completion_reports_already_completed(self, engine, make_user, timers):
        user = make_user()
        session = await engine.sessions.start(user.user_id, 25)
        await timers.advance(minutes=25)
        first = await engine.sessions.complete(session.session_id)
        coins = engine.store.get_user(user.user_id).focus_coins
        stats = engine.stats.get(user.user_id)

        with pytest.raises(SessionAlreadyCompleted) as exc_info:
            await engine.sessions.complete(session.session_id)

        assert exc_info.value.reward == 0
        assert exc_info.value.session.reward == first.reward
        assert engine.store.get_user(user.user_id).focus_coins == coins
        assert engine.stats.get(user.user_id) == stats

    async def test_concurrent_completions_reward_once(self, engine, make_user, timers):
        user = make_user()
        session = await engine.sessions.start(user.user_id, 25)
        await timers.advance(minutes=25)

        results = await asyncio.gather(
            *[engine.sessions.complete(session.session_id) for _ in range(3)],
            return_exceptions=True,
        )

        completed = [r for r in results if isinstance(r, CompletionResult)]
        rejected = [r for r in results if isinstance(r, SessionAlreadyCompleted)]
        assert len(completed) == 1
        assert len(rejected) == 2
        stored = engine.store.get_user(user.user_id)
        assert stored.total_pomodoros == 1
        assert stored.achievements == completed[0].achievements

    async def test_unknown_session(self, engine):
        with pytest.raises(SessionNotFound):
            await engine.sessions.complete("missing")

    async def test_cancelled_session_cannot_complete(self, engine, make_user):
        user = make_user()
        session = await engine.sessions.start(user.user_id, 25)
        engine.sessions.cancel(session.session_id)

        with pytest.raises(SessionNotActive):
            await engine.sessions.complete(session.session_id)


class TestTimeout:

    async def test_timeout_prompts_without_completing(self, engine, make_user, timers, notifier):
        user = make_user()
        session = await engine.sessions.start(user.user_id, 25)

        await timers.advance(minutes=25)

        prompts = notifier.of_type(NotificationType.SESSION_TIMEOUT)
        assert len(prompts) == 1
        assert prompts[0][0] == user.user_id
        assert engine.store.get_session(session.session_id).is_open

    async def test_completion_disarms_timeout(self, engine, make_user, timers, notifier):
        user = make_user()
        session = await engine.sessions.start(user.user_id, 25)
        await timers.advance(minutes=10)

        await engine.sessions.complete(session.session_id)
        await timers.advance(minutes=30)

        assert not timers.is_armed(session_timer_key(session.session_id))
        assert notifier.of_type(NotificationType.SESSION_TIMEOUT) == []

    async def test_stale_timeout_is_silent_noop(self, engine, make_user, notifier, clock):
        user = make_user()
        session = await engine.sessions.start(user.user_id, 25)
        clock.advance(minutes=25)
        await engine.sessions.complete(session.session_id)

        await engine.sessions._on_timeout(session.session_id)

        assert notifier.of_type(NotificationType.SESSION_TIMEOUT) == []

    async def test_restore_pending_timers(self, engine, make_user, store, timers, clock, notifier):
        user = make_user()
        overdue = FocusSession.create(user.user_id, 25, clock.now() - timedelta(minutes=30))
        store.create_session(overdue)

        assert engine.sessions.restore_pending_timers() == 1
        await timers.fire_due()

        assert len(notifier.of_type(NotificationType.SESSION_TIMEOUT)) == 1


class TestCancel:

    async def test_cancel_ends_session_without_reward(self, engine, make_user, timers):
        user = make_user()
        session = await engine.sessions.start(user.user_id, 25)

        assert engine.sessions.cancel(session.session_id) is True

        stored = engine.store.get_session(session.session_id)
        assert stored.status == SessionStatus.CANCELLED
        assert stored.reward == 0
        assert not timers.is_armed(session_timer_key(session.session_id))
        assert engine.store.get_user(user.user_id).total_focus_minutes == 0

    async def test_cancel_is_false_for_missing_or_finished(self, engine, make_user):
        user = make_user()
        session = await engine.sessions.start(user.user_id, 25)
        engine.sessions.cancel(session.session_id)

        assert engine.sessions.cancel(session.session_id) is False
        assert engine.sessions.cancel("missing") is False

    async def test_new_session_allowed_after_cancel(self, engine, make_user):
        user = make_user()
        session = await engine.sessions.start(user.user_id, 25)
        engine.sessions.cancel(session.session_id)

        second = await engine.sessions.start(user.user_id, 25)

        assert engine.sessions.get_active(user.user_id).session_id == second.session_id


class TestQueries:

    async def test_remaining(self, engine, make_user, clock):
        user = make_user()
        session = await engine.sessions.start(user.user_id, 25)
        clock.advance(minutes=10, seconds=30)

        remaining = engine.sessions.remaining(session.session_id)

        assert remaining == RemainingTime(14, 30)
        assert remaining.formatted == "14:30"

    async def test_remaining_never_negative(self, engine, make_user, clock):
        user = make_user()
        session = await engine.sessions.start(user.user_id, 25)
        clock.advance(minutes=40)

        assert engine.sessions.remaining(session.session_id) == RemainingTime(0, 0)

    async def test_remaining_none_after_completion(self, engine, make_user, clock):
        user = make_user()
        session = await engine.sessions.start(user.user_id, 25)
        clock.advance(minutes=25)
        await engine.sessions.complete(session.session_id)

        assert engine.sessions.remaining(session.session_id) is None

    async def test_remaining_unknown_session(self, engine):
        with pytest.raises(SessionNotFound):
            engine.sessions.remaining("missing")

    async def test_get_active_and_history(self, engine, make_user, clock):
        user = make_user()
        assert engine.sessions.get_active(user.user_id) is None

        first = await engine.sessions.start(user.user_id, 25)
        clock.advance(minutes=25)
        await engine.sessions.complete(first.session_id)
        clock.advance(minutes=5)
        second = await engine.sessions.start(user.user_id, 25)

        assert engine.sessions.get_active(user.user_id).session_id == second.session_id
        history = engine.sessions.history(user.user_id)
        assert [s.session_id for s in history] == [second.session_id, first.session_id]
        assert len(engine.sessions.history(user.user_id, limit=1)) == 1
