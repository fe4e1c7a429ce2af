import logging
from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from creative_factory.auth.clerk import verify_clerk_token
from creative_factory.db.repositories.workspaces import WorkspacesRepository
from creative_factory.services.errors import WorkspaceAccessDeniedError

bearer_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger("auth.deps")


@dataclass
class AuthContext:
    user_id: str


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> AuthContext:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    claims = verify_clerk_token(credentials.credentials)
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")
    return AuthContext(user_id=user_id)


def require_workspace_member(session: Session, auth: AuthContext, workspace_id: str) -> None:
    """Raise WorkspaceAccessDeniedError unless the caller belongs to the workspace."""
    member = WorkspacesRepository(session).get_member(workspace_id, auth.user_id)
    if member is None:
        logger.warning(
            "Workspace access denied",
            extra={"workspace_id": workspace_id, "sub": auth.user_id},
        )
        raise WorkspaceAccessDeniedError(workspace_id)
