from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from shared.utils import require_auth, ForbiddenException
from storefront.roles import Role, Capability, parse_role, has_capability


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: Role
    email: Optional[str] = None

    def can(self, capability: Capability) -> bool:
        return has_capability(self.role, capability)


def get_db(request: Request) -> AsyncIOMotorDatabase:
    return request.app.mongodb


async def get_current_user(request: Request, payload: dict = Depends(require_auth)) -> CurrentUser:
    user = CurrentUser(
        id=str(payload["sub"]),
        role=parse_role(payload.get("role")),
        email=payload.get("email"),
    )
    request.state.user_id = user.id
    return user


def require_capability(capability: Capability):
    async def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not user.can(capability):
            raise ForbiddenException("Insufficient permissions")
        return user
    return dependency


def get_payment_gateway(request: Request):
    return request.app.payment_gateway
