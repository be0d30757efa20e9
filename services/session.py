"""
Auth session state and auth-event redirects.

``SessionManager`` is the Python counterpart of the web client's auth
listener: it holds the current session, notifies subscribers of auth
events and decides where the user should be sent after each event.
"""

import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from services.supabase_client import SupabaseClient
from utils.logging import setup_logger

logger = setup_logger(__name__)

# Refresh tokens this close to expiry
REFRESH_MARGIN_SECONDS = 60

AUTH_PAGES = ("/login", "/forgot-password", "/update-password")


class AuthEvent(str, Enum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"


class Session(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None
    user: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_auth_response(
        cls, payload: Dict[str, Any], now: Optional[float] = None
    ) -> "Session":
        """Build from a GoTrue token response (``expires_at`` or ``expires_in``)."""
        expires_at = payload.get("expires_at")
        if expires_at is None and payload.get("expires_in") is not None:
            now = time.time() if now is None else now
            expires_at = int(now + int(payload["expires_in"]))
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_at=expires_at,
            user=payload.get("user") or {},
        )

    @property
    def user_id(self) -> Optional[str]:
        return self.user.get("id")

    def expires_within(self, seconds: float, now: float) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at - now <= seconds

    def to_response(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
            "user": self.user,
        }


def redirect_for(event: AuthEvent, current_path: Optional[str] = None) -> Optional[str]:
    """Where to send the user after ``event``, or None to stay put."""
    if event == AuthEvent.PASSWORD_RECOVERY:
        return "/update-password"
    if event == AuthEvent.SIGNED_IN and current_path in AUTH_PAGES:
        return "/"
    if event == AuthEvent.SIGNED_OUT:
        return "/login"
    return None


AuthListener = Callable[[AuthEvent, Optional[Session]], None]


class SessionManager:
    """
    Holds one session and broadcasts auth events.

    Args:
        client: Supabase client used for token refresh and sign-out
        session: Session to start with (emits INITIAL_SESSION on ``start``)
        clock: Time source in epoch seconds
    """

    def __init__(
        self,
        client: SupabaseClient,
        session: Optional[Session] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.session = session
        self.clock = clock
        self._listeners: List[AuthListener] = []

    @property
    def has_session(self) -> bool:
        return self.session is not None

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: AuthEvent, current_path: Optional[str] = None) -> Optional[str]:
        """Notify listeners of ``event``; returns the redirect it implies."""
        logger.info("Auth event", extra={"auth_event": event.value})
        for listener in list(self._listeners):
            listener(event, self.session)
        return redirect_for(event, current_path)

    def start(self, current_path: Optional[str] = None) -> Optional[str]:
        return self.emit(AuthEvent.INITIAL_SESSION, current_path)

    def signed_in(self, session: Session, current_path: Optional[str] = None) -> Optional[str]:
        self.session = session
        return self.emit(AuthEvent.SIGNED_IN, current_path)

    def password_recovery(self, session: Session) -> Optional[str]:
        self.session = session
        return self.emit(AuthEvent.PASSWORD_RECOVERY)

    def user_updated(self, user: Dict[str, Any]) -> Optional[str]:
        if self.session is not None:
            self.session = self.session.model_copy(update={"user": user})
        return self.emit(AuthEvent.USER_UPDATED)

    def sign_out(self, current_path: Optional[str] = None) -> Optional[str]:
        if self.session is not None:
            self.client.sign_out(self.session.access_token)
        self.session = None
        return self.emit(AuthEvent.SIGNED_OUT, current_path)

    def refresh_if_needed(self, margin_seconds: float = REFRESH_MARGIN_SECONDS) -> bool:
        """Refresh the session when it expires within ``margin_seconds``."""
        if self.session is None or not self.session.refresh_token:
            return False
        now = self.clock()
        if not self.session.expires_within(margin_seconds, now):
            return False

        self.refresh()
        return True

    def refresh(self) -> Session:
        """Exchange the refresh token for a new session."""
        if self.session is None or not self.session.refresh_token:
            raise ValueError("No refresh token to exchange")
        payload = self.client.refresh_session(self.session.refresh_token)
        self.session = Session.from_auth_response(payload, now=self.clock())
        self.emit(AuthEvent.TOKEN_REFRESHED)
        return self.session
