import re
from datetime import timedelta

import pytest

from focuspods.core.exceptions import (
    CreatorCannotLeave, ForbiddenError, InviteCodeExhausted, NotPodCreator, ParticipantNotFound,
    PodAlreadyFinished, PodAlreadyStarted, PodNotActive, PodNotFound, SessionAlreadyActive,
)
from focuspods.core.models import NotificationType, PodStatus, SessionStatus, TaskAction
from focuspods.services.timers import pod_timer_key
from focuspods.utils.datetime_utils import RemainingTime


@pytest.fixture
def alice(make_user):
    return make_user("Alice")


@pytest.fixture
def bob(make_user):
    return make_user("Bob")


@pytest.fixture
async def waiting_pod(engine, alice, bob):
    pod = await engine.pods.create(alice.user_id, alice.name, 25, "Утренний фокус")
    return await engine.pods.join(pod.pod_id, bob.user_id, bob.name)


class TestCreate:

    async def test_creator_is_first_participant(self, engine, alice):
        pod = await engine.pods.create(alice.user_id, alice.name, 30)

        assert pod.status == PodStatus.WAITING
        assert pod.participant_ids == [alice.user_id]
        assert pod.participants[0].is_creator
        assert pod.title == "Фокус-Pod от Alice"
        assert re.fullmatch(r"[0-9A-F]{8}", pod.invite_code)
        assert pod.share_link == f"https://t.me/focuspods_bot?start=pod_{pod.invite_code}"

    async def test_invite_code_collision_retries(self, engine, alice, monkeypatch):
        codes = iter(["aaaa1111", "aaaa1111", "bbbb2222"])
        monkeypatch.setattr("focuspods.services.pods.secrets.token_hex", lambda nbytes: next(codes))

        first = await engine.pods.create(alice.user_id, alice.name)
        second = await engine.pods.create(alice.user_id, alice.name)

        assert first.invite_code == "AAAA1111"
        assert second.invite_code == "BBBB2222"

    async def test_invite_code_exhausted(self, engine, alice, monkeypatch):
        monkeypatch.setattr("focuspods.services.pods.secrets.token_hex", lambda nbytes: "cafe0000")
        await engine.pods.create(alice.user_id, alice.name)

        with pytest.raises(InviteCodeExhausted):
            await engine.pods.create(alice.user_id, alice.name)


class TestJoin:

    async def test_join_by_invite_code(self, engine, alice, bob, notifier):
        pod = await engine.pods.create(alice.user_id, alice.name)

        joined = await engine.pods.join_by_invite_code(pod.invite_code.lower(), bob.user_id, bob.name)

        assert joined.participant_ids == [alice.user_id, bob.user_id]
        invites = notifier.of_type(NotificationType.POD_INVITE)
        assert [item[0] for item in invites] == [alice.user_id]
        assert "Участников: 2" in invites[0][1]

    async def test_rejoin_is_noop(self, engine, waiting_pod, bob, notifier):
        sent_before = len(notifier.sent)

        again = await engine.pods.join(waiting_pod.pod_id, bob.user_id, bob.name)

        assert again == waiting_pod
        assert len(notifier.sent) == sent_before

    async def test_join_unknown_pod(self, engine, bob):
        with pytest.raises(PodNotFound):
            await engine.pods.join("missing", bob.user_id, bob.name)
        with pytest.raises(PodNotFound):
            await engine.pods.join_by_invite_code("NOPE", bob.user_id, bob.name)

    async def test_join_after_start(self, engine, waiting_pod, alice, make_user):
        carol = make_user("Carol")
        await engine.pods.start(waiting_pod.pod_id, alice.user_id)

        with pytest.raises(PodAlreadyStarted):
            await engine.pods.join(waiting_pod.pod_id, carol.user_id, carol.name)


class TestStart:

    async def test_start_fans_out_sessions(self, engine, waiting_pod, alice, bob, clock, timers):
        pod = await engine.pods.start(waiting_pod.pod_id, alice.user_id)

        assert pod.status == PodStatus.ACTIVE
        assert pod.start_time == clock.now()
        assert pod.end_time == clock.now() + timedelta(minutes=25)
        assert timers.is_armed(pod_timer_key(pod.pod_id))
        for user in (alice, bob):
            session = engine.sessions.get_active(user.user_id)
            assert session.pod_id == pod.pod_id
            assert session.duration_minutes == 25
            assert session.status == SessionStatus.RUNNING

    async def test_non_creator_forbidden(self, engine, waiting_pod, bob):
        with pytest.raises(NotPodCreator):
            await engine.pods.start(waiting_pod.pod_id, bob.user_id)
        with pytest.raises(ForbiddenError):
            await engine.pods.cancel(waiting_pod.pod_id, bob.user_id)

        assert engine.pods.get_pod(waiting_pod.pod_id).status == PodStatus.WAITING

    async def test_start_twice(self, engine, waiting_pod, alice):
        await engine.pods.start(waiting_pod.pod_id, alice.user_id)

        with pytest.raises(PodAlreadyStarted):
            await engine.pods.start(waiting_pod.pod_id, alice.user_id)

    async def test_participant_with_open_session_blocks_start(self, engine, waiting_pod, alice, bob):
        await engine.sessions.start(bob.user_id, 25)

        with pytest.raises(SessionAlreadyActive):
            await engine.pods.start(waiting_pod.pod_id, alice.user_id)

        assert engine.pods.get_pod(waiting_pod.pod_id).status == PodStatus.WAITING
        assert engine.sessions.get_active(alice.user_id) is None


class TestComplete:

    async def test_timer_completes_pod(self, engine, waiting_pod, alice, bob, timers, notifier):
        await engine.pods.start(waiting_pod.pod_id, alice.user_id)

        await timers.advance(minutes=25)

        pod = engine.pods.get_pod(waiting_pod.pod_id)
        assert pod.status == PodStatus.COMPLETED
        completed = notifier.of_type(NotificationType.POD_COMPLETED)
        assert sorted(item[0] for item in completed) == sorted([alice.user_id, bob.user_id])
        # сессии участников завершаются отдельно
        assert engine.sessions.get_active(bob.user_id) is not None

    async def test_manual_completion_then_timer_is_noop(self, engine, waiting_pod, alice, timers, notifier):
        await engine.pods.start(waiting_pod.pod_id, alice.user_id)
        await timers.advance(minutes=10)

        await engine.pods.complete(waiting_pod.pod_id)
        await engine.pods._on_timer(waiting_pod.pod_id)

        assert len(notifier.of_type(NotificationType.POD_COMPLETED)) == 2
        assert not timers.is_armed(pod_timer_key(waiting_pod.pod_id))

    async def test_complete_waiting_pod(self, engine, waiting_pod):
        with pytest.raises(PodNotActive):
            await engine.pods.complete(waiting_pod.pod_id)


class TestCancelAndLeave:

    async def test_cancel_notifies_other_participants(self, engine, waiting_pod, alice, bob, notifier):
        pod = await engine.pods.cancel(waiting_pod.pod_id, alice.user_id)

        assert pod.status == PodStatus.CANCELLED
        cancelled = notifier.of_type(NotificationType.POD_CANCELLED)
        assert [item[0] for item in cancelled] == [bob.user_id]

    async def test_cancel_active_pod_disarms_timer(self, engine, waiting_pod, alice, timers):
        await engine.pods.start(waiting_pod.pod_id, alice.user_id)

        await engine.pods.cancel(waiting_pod.pod_id, alice.user_id)

        assert not timers.is_armed(pod_timer_key(waiting_pod.pod_id))

    async def test_cancel_finished_pod(self, engine, waiting_pod, alice):
        await engine.pods.start(waiting_pod.pod_id, alice.user_id)
        await engine.pods.complete(waiting_pod.pod_id)

        with pytest.raises(PodAlreadyFinished):
            await engine.pods.cancel(waiting_pod.pod_id, alice.user_id)

    async def test_creator_cannot_leave(self, engine, waiting_pod, alice):
        with pytest.raises(CreatorCannotLeave):
            engine.pods.leave(waiting_pod.pod_id, alice.user_id)

    async def test_participant_leaves(self, engine, waiting_pod, alice, bob, make_user):
        pod = engine.pods.leave(waiting_pod.pod_id, bob.user_id)
        assert pod.participant_ids == [alice.user_id]

        with pytest.raises(ParticipantNotFound):
            engine.pods.leave(waiting_pod.pod_id, make_user("Carol").user_id)


class TestParticipantAction:

    async def test_completed_action_sets_flag(self, engine, waiting_pod, bob):
        pod = engine.pods.record_participant_action(waiting_pod.pod_id, bob.user_id, TaskAction.COMPLETED)

        participant = pod.get_participant(bob.user_id)
        assert participant.task_action == TaskAction.COMPLETED
        assert participant.task_completed is True

    async def test_other_action(self, engine, waiting_pod, bob):
        pod = engine.pods.record_participant_action(waiting_pod.pod_id, bob.user_id, "split")

        participant = pod.get_participant(bob.user_id)
        assert participant.task_action == TaskAction.SPLIT
        assert participant.task_completed is None

    async def test_later_action_keeps_completed_flag(self, engine, waiting_pod, bob):
        engine.pods.record_participant_action(waiting_pod.pod_id, bob.user_id, TaskAction.COMPLETED)
        pod = engine.pods.record_participant_action(waiting_pod.pod_id, bob.user_id, TaskAction.SKIPPED)

        participant = pod.get_participant(bob.user_id)
        assert participant.task_action == TaskAction.SKIPPED
        assert participant.task_completed is True

    async def test_unknown_participant(self, engine, waiting_pod):
        with pytest.raises(ParticipantNotFound):
            engine.pods.record_participant_action(waiting_pod.pod_id, "stranger", TaskAction.SKIPPED)
        with pytest.raises(PodNotFound):
            engine.pods.record_participant_action("missing", "stranger", TaskAction.SKIPPED)


class TestQueries:

    async def test_remaining(self, engine, waiting_pod, alice, clock):
        assert engine.pods.remaining(waiting_pod.pod_id) is None

        await engine.pods.start(waiting_pod.pod_id, alice.user_id)
        clock.advance(minutes=5)

        assert engine.pods.remaining(waiting_pod.pod_id) == RemainingTime(20, 0)

    async def test_user_pods(self, engine, waiting_pod, alice, bob):
        assert engine.pods.get_user_waiting_pod(bob.user_id).pod_id == waiting_pod.pod_id
        assert engine.pods.get_user_active_pod(bob.user_id).pod_id == waiting_pod.pod_id
        assert engine.pods.get_user_pod_stats(alice.user_id)['active'] == 0

        await engine.pods.start(waiting_pod.pod_id, alice.user_id)

        assert engine.pods.get_user_active_pod(alice.user_id).pod_id == waiting_pod.pod_id
        assert engine.pods.get_user_pod_stats(alice.user_id) == {
            'created': 1, 'participated': 1, 'completed': 0, 'active': 1,
        }
        assert engine.pods.get_user_pod_stats(bob.user_id)['created'] == 0

    async def test_finished_pod_is_not_open(self, engine, waiting_pod, alice, bob):
        await engine.pods.cancel(waiting_pod.pod_id, alice.user_id)

        assert engine.pods.get_user_active_pod(bob.user_id) is None
        assert engine.pods.get_user_waiting_pod(bob.user_id) is None

    async def test_restore_pending_timers(self, engine, waiting_pod, alice, store, timers, clock):
        await engine.pods.start(waiting_pod.pod_id, alice.user_id)
        timers.disarm(pod_timer_key(waiting_pod.pod_id))
        clock.advance(minutes=30)

        assert engine.pods.restore_pending_timers() == 1
        await timers.fire_due()

        assert store.get_pod(waiting_pod.pod_id).status == PodStatus.COMPLETED
