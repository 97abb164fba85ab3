"""
Tests for daily decay.

Tests cover:
1. Missed habit detection around the yesterday boundary
2. Penalty calculation and clamping at zero HP
3. Once-per-day checkpoint
4. Persisted decay with notifications and depletion
5. Background sweep
"""
import pytest
from datetime import timedelta

from vitality.constants import LOCKOUT_DEPLETED
from vitality.exceptions import CharacterNotFoundException, InvariantViolation, PersistenceException
from vitality.repositories.character_repository import CharacterRepository
from vitality.repositories.habit_repository import HabitRepository
from vitality.services.decay_service import DecayService, is_habit_missed, run_daily_decay
from vitality.services.lockout_service import lockout_state_of
from vitality.tests.conftest import (
    USER_ID, at, create_character, create_habit, create_rules,
    make_habit, make_rules, make_state
)


class TestMissedHabit:
    """Tests for is_habit_missed"""

    def test_never_completed_is_missed(self, today):
        assert is_habit_missed(make_habit(last_completed_at=None), today)

    @pytest.mark.parametrize("hour,minute", [(0, 0), (12, 0), (23, 59)])
    def test_completed_yesterday_is_not_missed(self, today, yesterday, hour, minute):
        """Any moment of yesterday's calendar day counts"""
        habit = make_habit(last_completed_at=at(yesterday, hour, minute))
        assert not is_habit_missed(habit, today)

    def test_completed_today_is_not_missed(self, today):
        assert not is_habit_missed(make_habit(last_completed_at=at(today, 8)), today)

    def test_completed_two_days_ago_is_missed(self, today):
        habit = make_habit(last_completed_at=at(today - timedelta(days=2), 23, 59))
        assert is_habit_missed(habit, today)

    def test_one_second_before_yesterday_is_missed(self, yesterday, today):
        habit = make_habit(last_completed_at=at(yesterday, 0) - timedelta(seconds=1))
        assert is_habit_missed(habit, today)


class TestRunDailyDecay:
    """Tests for the pure decay scan"""

    def test_one_missed_habit(self, today, yesterday):
        """hp 10, one of two habits missed, rate 5 -> hp 5"""
        character = make_state(hp=10, max_hp=100)
        habits = [
            make_habit(1, last_completed_at=at(yesterday, 18)),
            make_habit(2, last_completed_at=None),
        ]

        result = run_daily_decay(character, habits, make_rules(hp_penalty_rate=5), None, today)

        assert result.ran is True
        assert result.missed_count == 1
        assert result.applied_penalty == 5
        assert result.hp_lost == 5
        assert result.character.hp == 5
        assert result.new_check_date == today
        assert result.character.last_decay_check == today

    def test_penalty_clamped_at_zero(self, today):
        """hp 5, two missed habits at rate 5 -> hp 0, nominal penalty 10"""
        character = make_state(hp=5)
        habits = [make_habit(1), make_habit(2)]

        result = run_daily_decay(character, habits, make_rules(hp_penalty_rate=5), None, today)

        assert result.character.hp == 0
        assert result.applied_penalty == 10
        assert result.hp_lost == 5
        assert lockout_state_of(result.character) == LOCKOUT_DEPLETED

    def test_same_day_checkpoint_is_noop(self, today):
        """Second scan on the same day changes nothing"""
        character = make_state(hp=50, last_decay_check=today)

        result = run_daily_decay(character, [make_habit(1)], make_rules(), today, today)

        assert result.ran is False
        assert result.applied_penalty == 0
        assert result.character.hp == 50
        assert result.new_check_date == today

    def test_older_checkpoint_runs(self, today, yesterday):
        result = run_daily_decay(make_state(hp=50), [make_habit(1)], make_rules(), yesterday, today)

        assert result.ran is True
        assert result.character.hp == 45

    def test_inactive_habits_are_ignored(self, today):
        habits = [make_habit(1, is_active=False), make_habit(2, is_active=False)]

        result = run_daily_decay(make_state(hp=50), habits, make_rules(), None, today)

        assert result.ran is True
        assert result.missed_count == 0
        assert result.character.hp == 50

    def test_no_habits_no_penalty(self, today):
        """Checkpoint still advances when there is nothing to decay"""
        result = run_daily_decay(make_state(hp=50), [], make_rules(), None, today)

        assert result.ran is True
        assert result.applied_penalty == 0
        assert result.character.hp == 50
        assert result.new_check_date == today

    def test_zero_rate_disables_penalty(self, today):
        result = run_daily_decay(
            make_state(hp=50), [make_habit(1)], make_rules(hp_penalty_rate=0), None, today
        )

        assert result.missed_count == 1
        assert result.character.hp == 50

    def test_default_rate_is_five(self, today):
        result = run_daily_decay(make_state(hp=50), [make_habit(1)], make_rules(), None, today)
        assert result.applied_penalty == 5

    @pytest.mark.parametrize("hp", [0, 1, 7, 100])
    def test_never_raises_hp(self, today, hp):
        result = run_daily_decay(make_state(hp=hp), [make_habit(1)], make_rules(), None, today)
        assert 0 <= result.character.hp <= hp

    def test_zero_hp_stays_zero(self, today):
        result = run_daily_decay(make_state(hp=0), [make_habit(1)], make_rules(), None, today)

        assert result.character.hp == 0
        assert result.hp_lost == 0

    def test_broken_input_is_reported(self, today):
        with pytest.raises(InvariantViolation):
            run_daily_decay(make_state(hp=-3), [], make_rules(), None, today)


class TestDecayService:
    """Tests for persisted decay"""

    def test_applies_and_persists(self, db_session, notifier, today, yesterday):
        create_character(db_session, hp=10)
        create_habit(db_session, name="Read", last_completed_at=at(yesterday, 21))
        create_habit(db_session, name="Run")

        character, result = DecayService(db_session, notifier).run_for_user(USER_ID, today)

        assert character.hp == 5
        assert character.last_decay_check == today
        assert result.missed_count == 1
        assert notifier.kinds() == ["decay"]
        assert notifier.sent[0]["title"] == "HP DECAY: -5 HP"
        assert notifier.sent[0]["message"].startswith("1 habit missed yesterday")

    def test_runs_once_per_day(self, db_session, notifier, today):
        create_character(db_session, hp=50)
        create_habit(db_session)
        service = DecayService(db_session, notifier)

        first_character, first = service.run_for_user(USER_ID, today)
        version = first_character.version
        second_character, second = service.run_for_user(USER_ID, today)

        assert first.ran is True
        assert second.ran is False
        assert second_character.hp == 45
        assert second_character.version == version
        assert notifier.kinds() == ["decay"]

    def test_next_day_runs_again(self, db_session, notifier, today):
        create_character(db_session, hp=50)
        create_habit(db_session)
        service = DecayService(db_session, notifier)

        service.run_for_user(USER_ID, today)
        character, result = service.run_for_user(USER_ID, today + timedelta(days=1))

        assert result.ran is True
        assert character.hp == 40

    def test_uses_stored_rate(self, db_session, notifier, today):
        create_character(db_session, hp=50)
        create_habit(db_session)
        create_habit(db_session, name="Stretch")
        create_rules(db_session, hp_penalty_rate=8)

        character, result = DecayService(db_session, notifier).run_for_user(USER_ID, today)

        assert result.applied_penalty == 16
        assert character.hp == 34

    def test_inactive_habits_not_decayed(self, db_session, notifier, today):
        create_character(db_session, hp=50)
        create_habit(db_session, is_active=False)

        character, result = DecayService(db_session, notifier).run_for_user(USER_ID, today)

        assert result.missed_count == 0
        assert character.hp == 50
        assert character.last_decay_check == today
        assert notifier.sent == []

    def test_depletion_notifies(self, db_session, notifier, today):
        """Reaching 0 HP emits the decay toast and then the depleted toast"""
        create_character(db_session, hp=5, punishment_task="100 squats")
        create_habit(db_session)
        create_habit(db_session, name="Meditate")

        character, result = DecayService(db_session, notifier).run_for_user(USER_ID, today)

        assert character.hp == 0
        assert result.applied_penalty == 10
        assert lockout_state_of(character) == LOCKOUT_DEPLETED
        assert notifier.kinds() == ["decay", "depleted"]
        assert notifier.sent[0]["title"] == "HP DECAY: -5 HP"
        assert "100 squats" in notifier.sent[1]["message"]

    def test_already_depleted_gets_only_the_decay_warning(self, db_session, notifier, today):
        create_character(db_session, hp=0)
        create_habit(db_session)

        character, _ = DecayService(db_session, notifier).run_for_user(USER_ID, today)

        assert character.hp == 0
        # The missed-habit warning still goes out, the depleted toast does not
        assert notifier.kinds() == ["decay"]
        assert notifier.sent[0]["title"] == "HP DECAY: -0 HP"

    def test_unknown_user(self, db_session, notifier, today):
        with pytest.raises(CharacterNotFoundException):
            DecayService(db_session, notifier).run_for_user("ghost", today)


class TestDecaySweep:
    """Tests for the background sweep"""

    def test_sweeps_pending_characters(self, db_session, notifier, today):
        create_character(db_session, user_id="a", hp=50)
        create_character(db_session, user_id="b", hp=50, last_decay_check=today)
        create_habit(db_session, user_id="a")
        create_habit(db_session, user_id="b")

        scanned = DecayService(db_session, notifier).run_sweep(today)

        assert scanned == 1
        assert CharacterRepository.get_by_user_id(db_session, "a").hp == 45
        assert CharacterRepository.get_by_user_id(db_session, "b").hp == 50

    def test_respects_auto_decay_flag(self, db_session, notifier, today):
        create_character(db_session, user_id="a", hp=50)
        create_habit(db_session, user_id="a")
        create_rules(db_session, user_id="a", auto_decay_enabled=False)

        scanned = DecayService(db_session, notifier).run_sweep(today)

        assert scanned == 0
        assert notifier.sent == []

    def test_second_sweep_same_day_does_nothing(self, db_session, notifier, today):
        create_character(db_session, hp=50)
        create_habit(db_session)
        service = DecayService(db_session, notifier)

        assert service.run_sweep(today) == 1
        assert service.run_sweep(today) == 0
        assert notifier.kinds() == ["decay"]

    def test_one_user_failing_does_not_stop_the_sweep(self, db_session, notifier, today, monkeypatch):
        create_character(db_session, user_id="a", hp=50)
        create_character(db_session, user_id="b", hp=50)
        create_habit(db_session, user_id="a")
        create_habit(db_session, user_id="b")
        original = HabitRepository.get_active

        def flaky(db, user_id):
            if user_id == "a":
                raise RuntimeError("corrupt habit row")
            return original(db, user_id)

        monkeypatch.setattr(HabitRepository, "get_active", staticmethod(flaky))

        scanned = DecayService(db_session, notifier).run_sweep(today)

        assert scanned == 1
        assert CharacterRepository.get_by_user_id(db_session, "a").hp == 50
        assert CharacterRepository.get_by_user_id(db_session, "b").hp == 45

    def test_read_failure_sends_error_notification(self, db_session, notifier, today, monkeypatch):
        create_character(db_session, hp=50)
        create_habit(db_session)

        def failing(db, user_id):
            raise PersistenceException("read", "database is locked")

        monkeypatch.setattr(HabitRepository, "get_active", staticmethod(failing))

        with pytest.raises(PersistenceException):
            DecayService(db_session, notifier).run_for_user(USER_ID, today)

        assert notifier.kinds() == ["error"]
        assert CharacterRepository.get_by_user_id(db_session, USER_ID).last_decay_check is None
