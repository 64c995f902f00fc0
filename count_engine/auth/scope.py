from typing import Optional
from pydantic import BaseModel
from count_engine.core.exceptions import AuthenticationError

class CallerScope(BaseModel):
    """Organization/caller identity handed over by the authentication layer"""
    organization_id: Optional[int] = None
    user_id: Optional[int] = None
    team_id: Optional[int] = None


def require_caller_scope(scope: Optional[CallerScope]) -> CallerScope:
    """Fail fast before any store access when identity or organization is missing"""
    if scope is None or scope.user_id is None:
        raise AuthenticationError("Not authenticated")
    if scope.organization_id is None:
        raise AuthenticationError("No organization context for the current user")
    return scope
