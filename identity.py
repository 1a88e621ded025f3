"""
Role gate for the API.

Authentication happens upstream; by the time a request reaches an ordering
route the session holds `{"id", "role"}` for the actor. These dependencies only
read it and check the role.
"""

from fastapi import Depends, Request

from errors import Forbidden, NotAuthenticated
from schemas import Identity, Role

SESSION_KEY = "user"


def bind(session: dict, user_id: str, role: Role) -> Identity:
    identity = Identity(id=user_id, role=role)
    session[SESSION_KEY] = identity.model_dump(mode="json")
    return identity


def current_identity(request: Request) -> Identity:
    raw = request.session.get(SESSION_KEY)
    if not raw:
        raise NotAuthenticated()
    return Identity.model_validate(raw)


def require_role(*roles: Role):
    allowed = set(roles)

    def dependency(identity: Identity = Depends(current_identity)) -> Identity:
        if identity.role not in allowed:
            raise Forbidden("Insufficient role")
        return identity

    return dependency
