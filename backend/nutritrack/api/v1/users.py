"""User routes guarded by access level"""

import logging
from typing import List

from fastapi import APIRouter, Depends

from nutritrack.api.deps import AuthenticatedUser, get_services, rate_limit, require_auth, verify_csrf
from nutritrack.core.exceptions import AuthenticationError, AuthorizationError, ResourceNotFoundError
from nutritrack.schemas.response import APIResponse, CountResponse
from nutritrack.schemas.user import AccessLevel, AdminUserResponse, BlockUserRequest, UserResponse
from nutritrack.services.container import Services

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/me", response_model=UserResponse, dependencies=[Depends(rate_limit("query"))])
def get_my_profile(
    current_user: AuthenticatedUser = Depends(require_auth()),
    services: Services = Depends(get_services),
):
    """
    Get current user profile

    Args:
        current_user: Current authenticated user
        services: Application services

    Returns:
        User profile
    """
    user = services.users.find_by_id(current_user.user_id)
    if not user:
        raise AuthenticationError("User not found")
    return UserResponse.model_validate(user)


@router.get("/count", response_model=CountResponse, dependencies=[Depends(rate_limit("query"))])
def get_active_user_count(
    current_user: AuthenticatedUser = Depends(require_auth(AccessLevel.MODERATOR)),
    services: Services = Depends(get_services),
):
    """Number of users that are not blocked (moderator and up)"""
    return CountResponse(count=services.users.count_active_users())


@router.get("/", response_model=List[AdminUserResponse], dependencies=[Depends(rate_limit("query"))])
def get_all_users(
    current_user: AuthenticatedUser = Depends(require_auth(AccessLevel.ADMIN)),
    services: Services = Depends(get_services),
):
    """
    Get all users (admin only)

    Returns:
        List of users
    """
    return [AdminUserResponse.model_validate(user) for user in services.users.list_users()]


@router.patch(
    "/{user_id}/block",
    response_model=APIResponse,
    dependencies=[Depends(rate_limit("mutation")), Depends(verify_csrf)],
)
def set_user_blocked(
    user_id: int,
    body: BlockUserRequest,
    current_user: AuthenticatedUser = Depends(require_auth(AccessLevel.ADMIN)),
    services: Services = Depends(get_services),
):
    """
    Block or unblock a user (admin only)

    Blocking also ends every session of that user.
    """
    if user_id == current_user.user_id:
        raise AuthorizationError("Administrators cannot block themselves")

    if not services.users.set_blocked(user_id, body.blocked):
        raise ResourceNotFoundError("User")

    revoked = 0
    if body.blocked:
        revoked = services.tokens.logout_everywhere(user_id)
        logger.warning(f"User {user_id} blocked by {current_user.username}")

    return APIResponse(
        message=f"User {user_id} {'blocked' if body.blocked else 'unblocked'}",
        data={"revoked_sessions": revoked},
    )
