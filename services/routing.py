"""Route table and session guards for the web client's views."""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel


class Guard(str, Enum):
    PROTECTED = "protected"  # needs a session
    PUBLIC_ONLY = "public_only"  # only without a session


class Route(BaseModel):
    path: str
    view: str
    guard: Guard


ROUTES: Dict[str, Route] = {
    route.path: route
    for route in (
        Route(path="/", view="dashboard", guard=Guard.PROTECTED),
        Route(path="/analytics", view="analytics", guard=Guard.PROTECTED),
        Route(path="/profile", view="profile", guard=Guard.PROTECTED),
        Route(path="/debts", view="debts", guard=Guard.PROTECTED),
        Route(path="/goals", view="goals", guard=Guard.PROTECTED),
        Route(path="/login", view="login", guard=Guard.PUBLIC_ONLY),
        Route(path="/forgot-password", view="forgot_password", guard=Guard.PUBLIC_ONLY),
        Route(path="/update-password", view="update_password", guard=Guard.PUBLIC_ONLY),
    )
}


class RouteDecision(BaseModel):
    path: str
    view: Optional[str] = None
    redirect: Optional[str] = None


def _normalize(path: str) -> str:
    path = (path or "/").split("?", 1)[0].split("#", 1)[0]
    if len(path) > 1:
        path = path.rstrip("/")
    return path or "/"


def resolve(path: str, has_session: bool) -> RouteDecision:
    """Return the view for ``path`` or the redirect its guard demands."""
    path = _normalize(path)
    route = ROUTES.get(path)
    home = "/" if has_session else "/login"

    if route is None:
        return RouteDecision(path=path, redirect=home)
    if route.guard == Guard.PROTECTED and not has_session:
        return RouteDecision(path=path, redirect="/login")
    if route.guard == Guard.PUBLIC_ONLY and has_session:
        return RouteDecision(path=path, redirect="/")
    return RouteDecision(path=path, view=route.view)
