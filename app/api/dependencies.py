"""
API Dependencies for authentication and authorization
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional

from app.db.session import get_db
from app.models.user import User, UserRole, Property, PropertyAssignment
from app.core.exceptions import NotFoundError
from app.services.auth_service import auth_service


security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> int:
    """
    Get current user ID from JWT token.
    Validates JWT token and extracts user_id.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = auth_service.decode_access_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id: str = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return int(user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID in token",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Get the current authenticated user object.
    """
    result = await db.execute(
        select(User).where(User.id == user_id)
    )
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Get the current authenticated and active user.
    """
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )

    return current_user


def require_roles(*roles: UserRole):
    """
    Dependency factory for role-based access control.
    Usage: @router.post("/", dependencies=[Depends(require_roles(UserRole.ADMIN))])
    """
    def check_user_role(current_user: User = Depends(get_current_active_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions"
            )
        return current_user

    return check_user_role


async def get_accessible_property_ids(db: AsyncSession, current_user: User) -> Optional[List[int]]:
    """
    Properties the user may see.

    Role-Based Access Logic:
    - ADMIN: every property of the organization (returns None, meaning no filter)
    - PROPERTY_MANAGER / STAFF: only properties they are assigned to

    Returns:
        List of property ids, or None for unrestricted access
    """
    if current_user.role == UserRole.ADMIN:
        return None

    result = await db.execute(
        select(PropertyAssignment.property_id)
        .join(Property, PropertyAssignment.property_id == Property.id)
        .where(
            PropertyAssignment.user_id == current_user.id,
            Property.organization_id == current_user.organization_id,
        )
    )
    return list(result.scalars().all())


async def check_property_access(db: AsyncSession, current_user: User, property_id: int) -> Property:
    """
    Load a property of the user's organization and make sure the user may see it.

    Raises:
        HTTPException 404 if the property does not exist in the organization,
        403 if the user is not assigned to it
    """
    result = await db.execute(
        select(Property).where(
            Property.id == property_id,
            Property.organization_id == current_user.organization_id,
        )
    )
    prop = result.scalar_one_or_none()
    if not prop:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Property not found"
        )

    allowed = await get_accessible_property_ids(db, current_user)
    if allowed is not None and prop.id not in allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this property"
        )
    return prop


def domain_http_exception(exc: ValueError) -> HTTPException:
    """
    Map a service-layer exception onto the HTTP error the API returns:
    NotFoundError -> 404, any other domain ValueError -> 400.
    """
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
