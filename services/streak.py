"""
Daily activity streak.

A streak counts consecutive days with at least one recorded activity.
It survives as long as the last activity was today or yesterday; a longer
gap resets it. Updates are written to the ``profiles`` row and then
published on a ``StreakChannel`` for whoever wants to react (the dashboard
response, logging, tests).
"""

from datetime import date, timedelta
from enum import Enum
from typing import Callable, List, Optional

from pydantic import BaseModel

from models.profile import Profile
from services.supabase_client import SupabaseClient
from utils.logging import setup_logger

logger = setup_logger(__name__)


class StreakLevel(str, Enum):
    BASIC = "basic"
    SOLID = "solid"
    GOLDEN = "golden"
    LEGENDARY = "legendary"


class StreakUpdate(BaseModel):
    user_id: str
    previous_streak: int
    current_streak: int
    max_streak: int
    last_activity_date: date
    changed: bool

    @property
    def level(self) -> StreakLevel:
        return streak_level(self.current_streak)


def streak_level(days: int) -> StreakLevel:
    if days >= 100:
        return StreakLevel.LEGENDARY
    if days >= 30:
        return StreakLevel.GOLDEN
    if days >= 7:
        return StreakLevel.SOLID
    return StreakLevel.BASIC


def effective_streak(profile: Profile, today: date) -> int:
    """Stored streak if it is still alive on ``today``, else 0."""
    last = profile.last_activity_date
    if last is None:
        return 0
    if last in (today, today - timedelta(days=1)):
        return profile.current_streak
    return 0


def register_activity(profile: Profile, today: date) -> StreakUpdate:
    """Streak after an activity on ``today``; a second activity the same day changes nothing."""
    if profile.last_activity_date == today:
        return StreakUpdate(
            user_id=profile.id,
            previous_streak=profile.current_streak,
            current_streak=profile.current_streak,
            max_streak=max(profile.max_streak, profile.current_streak),
            last_activity_date=today,
            changed=False,
        )

    previous = effective_streak(profile, today)
    current = previous + 1
    return StreakUpdate(
        user_id=profile.id,
        previous_streak=previous,
        current_streak=current,
        max_streak=max(profile.max_streak, current),
        last_activity_date=today,
        changed=True,
    )


StreakListener = Callable[[StreakUpdate], None]


class StreakChannel:
    """Explicit publish/subscribe point for streak updates."""

    def __init__(self):
        self._listeners: List[StreakListener] = []

    def subscribe(self, listener: StreakListener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, update: StreakUpdate) -> None:
        for listener in list(self._listeners):
            listener(update)


class StreakService:
    """Reads and writes the streak columns of a user's profile."""

    def __init__(self, client: SupabaseClient, channel: Optional[StreakChannel] = None):
        self.client = client
        self.channel = channel or StreakChannel()

    def get_profile(self, user_id: str) -> Optional[Profile]:
        rows = self.client.table("profiles").select("*").eq("id", user_id).execute()
        return Profile.from_record(rows[0]) if rows else None

    def current(self, user_id: str, today: date) -> int:
        profile = self.get_profile(user_id)
        return effective_streak(profile, today) if profile else 0

    def record_activity(self, user_id: str, today: date) -> Optional[StreakUpdate]:
        """
        Register an activity for ``user_id`` on ``today``.

        Returns None when the user has no profile row yet.
        """
        profile = self.get_profile(user_id)
        if profile is None:
            logger.warning("No profile to record activity on", extra={"user_id": user_id})
            return None

        update = register_activity(profile, today)
        if update.changed:
            self.client.table("profiles").update(
                {
                    "current_streak": update.current_streak,
                    "max_streak": update.max_streak,
                    "last_activity_date": today.isoformat(),
                }
            ).eq("id", user_id).execute()
            logger.info(
                "Streak updated",
                extra={"user_id": user_id, "current_streak": update.current_streak},
            )
            self.channel.publish(update)
        return update
