"""Tests for the daily activity streak."""

from datetime import date, timedelta

from conftest import FakeSupabaseClient

from models.profile import Profile
from services.streak import (StreakChannel, StreakLevel, StreakService,
                             effective_streak, register_activity, streak_level)

TODAY = date(2026, 10, 19)
YESTERDAY = TODAY - timedelta(days=1)


def profile(current=0, maximum=0, last=None):
    return Profile(
        id="user-1", current_streak=current, max_streak=maximum, last_activity_date=last
    )


class TestStreakRules:
    """Tests for the pure streak rules."""

    def test_effective_streak(self):
        """Streaks survive until the day after the last activity."""
        assert effective_streak(profile(4, 4, TODAY), TODAY) == 4
        assert effective_streak(profile(4, 4, YESTERDAY), TODAY) == 4
        assert effective_streak(profile(4, 4, TODAY - timedelta(days=2)), TODAY) == 0
        assert effective_streak(profile(4, 4, None), TODAY) == 0

    def test_activity_continues_streak(self):
        """Activity the day after extends the streak."""
        update = register_activity(profile(4, 4, YESTERDAY), TODAY)
        assert update.changed is True
        assert (update.previous_streak, update.current_streak, update.max_streak) == (4, 5, 5)

    def test_second_activity_same_day_changes_nothing(self):
        """Only the first activity of the day counts."""
        update = register_activity(profile(4, 9, TODAY), TODAY)
        assert update.changed is False
        assert update.current_streak == 4
        assert update.max_streak == 9

    def test_gap_restarts_streak(self):
        """After a gap the streak starts again at 1; the maximum stays."""
        update = register_activity(profile(12, 20, TODAY - timedelta(days=3)), TODAY)
        assert update.current_streak == 1
        assert update.max_streak == 20

    def test_levels(self):
        """Badge levels at 7, 30 and 100 days."""
        assert streak_level(6) == StreakLevel.BASIC
        assert streak_level(7) == StreakLevel.SOLID
        assert streak_level(30) == StreakLevel.GOLDEN
        assert streak_level(100) == StreakLevel.LEGENDARY


class TestStreakChannel:
    """Tests for streak update subscriptions."""

    def test_unsubscribe(self):
        """Unsubscribed listeners stop receiving updates."""
        channel = StreakChannel()
        received = []
        unsubscribe = channel.subscribe(received.append)

        update = register_activity(profile(), TODAY)
        channel.publish(update)
        unsubscribe()
        channel.publish(update)

        assert received == [update]


class TestStreakService:
    """Tests for persisting streak changes."""

    def test_record_activity_updates_profile_and_publishes(self):
        """A new day's activity is written and published."""
        client = FakeSupabaseClient()
        client.seed(
            "profiles",
            {"id": "user-1", "current_streak": 2, "max_streak": 2,
             "last_activity_date": YESTERDAY.isoformat()},
        )
        channel = StreakChannel()
        received = []
        channel.subscribe(received.append)

        update = StreakService(client, channel).record_activity("user-1", TODAY)

        assert update.current_streak == 3
        row = client.tables["profiles"][0]
        assert row["current_streak"] == 3
        assert row["max_streak"] == 3
        assert row["last_activity_date"] == TODAY.isoformat()
        assert received == [update]

    def test_same_day_is_not_written(self):
        """An unchanged streak is neither written nor published."""
        client = FakeSupabaseClient()
        client.seed(
            "profiles",
            {"id": "user-1", "current_streak": 2, "max_streak": 2,
             "last_activity_date": TODAY.isoformat()},
        )
        received = []
        channel = StreakChannel()
        channel.subscribe(received.append)

        StreakService(client, channel).record_activity("user-1", TODAY)

        assert ("profiles", "PATCH") not in client.calls
        assert received == []

    def test_missing_profile(self):
        """Users without a profile row get no streak."""
        client = FakeSupabaseClient()
        service = StreakService(client)
        assert service.record_activity("user-1", TODAY) is None
        assert service.current("user-1", TODAY) == 0
