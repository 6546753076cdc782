from __future__ import annotations
import httpx
import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from townhall.models.user import Viewer
from townhall.security import decode_token
from townhall.services.backend import BackendClient
from townhall.services.ideas import IdeaRepository
from townhall.services.sessions import SessionRegistry, ViewerSession

security = HTTPBearer(auto_error=False)


def get_http(request: Request) -> httpx.AsyncClient:
    return request.app.state.http


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_backend(
    http: httpx.AsyncClient = Depends(get_http),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> BackendClient:
    return BackendClient(http, access_token=credentials.credentials if credentials else None)


def get_repository(client: BackendClient = Depends(get_backend)) -> IdeaRepository:
    return IdeaRepository(client)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    repository: IdeaRepository = Depends(get_repository),
) -> Viewer:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    token = credentials.credentials
    try:
        data = decode_token(token)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    user_id = data.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    profile = await repository.fetch_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=401, detail="User not found")
    return Viewer(
        id=profile.id,
        email=data.get("email"),
        name=profile.name,
        role=profile.role,
        email_verified=profile.email_verified,
        access_token=token,
    )


def get_viewer_session(
    viewer: Viewer = Depends(get_current_user),
    repository: IdeaRepository = Depends(get_repository),
    registry: SessionRegistry = Depends(get_session_registry),
) -> ViewerSession:
    return registry.open(viewer, repository)
