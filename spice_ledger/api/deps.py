from typing import Annotated
import logging

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from spice_ledger.database import get_db
from spice_ledger.core.security import verify_access_token
from spice_ledger.services.reminder_scheduler import NotificationState


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> str:
    """
    Dependency to get the authenticated subject.
    Validates the JWT access token and returns its `sub` claim.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    subject = verify_access_token(credentials.credentials)
    if subject is None:
        logger.warning("Token verification failed - invalid or expired token")
        raise credentials_exception

    return subject


def get_notification_state(request: Request) -> NotificationState:
    """Process-lifetime notification dedup state, created in the app lifespan."""
    state = getattr(request.app.state, "notification_state", None)
    if state is None:
        state = NotificationState()
        request.app.state.notification_state = state
    return state


# Type aliases for dependency injection
CurrentUser = Annotated[str, Depends(get_current_user)]
DB = Annotated[AsyncSession, Depends(get_db)]
Notifications = Annotated[NotificationState, Depends(get_notification_state)]
