from collections.abc import Generator
import logging

import jwt
from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import AuthenticationError
from app.core.settings import settings
from app.db.models import User
from app.db.session import get_db
from app.services.assets import AssetService
from app.services.canvases import CanvasService
from app.services.storage import StorageClient


logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def db_session() -> Generator[Session, None, None]:
    yield from get_db()


DbSessionDep = Depends(db_session)


def storage_client(request: Request) -> StorageClient:
    return request.app.state.storage


StorageDep = Depends(storage_client)


def decode_access_token(token: str) -> dict:
    """Verify a bearer token issued by the identity provider and return its claims."""
    try:
        return jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience,
            issuer=settings.auth_jwt_issuer,
            options={"require": ["sub"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("token expired", detail="Invalid or expired token") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError(f"invalid token: {exc}", detail="Invalid or expired token") from exc


def _sync_user(db: Session, claims: dict) -> User:
    user_id = str(claims["sub"])
    email = claims.get("email")
    name = claims.get("name")

    user = db.get(User, user_id)
    if user is None:
        if not email:
            raise AuthenticationError("token has no email claim", detail="Authentication failed")
        user = User(id=user_id, email=email, name=name)
        db.add(user)
    else:
        if email and user.email != email:
            user.email = email
        if name and user.name != name:
            user.name = name
    if db.new or db.dirty:
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.warning("user_sync_conflict", extra={"subject": user_id})
            raise AuthenticationError("email already bound to another account", detail="Authentication failed") from exc
        db.refresh(user)
    return user


def current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
    db: Session = DbSessionDep,
) -> User:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("missing bearer token", detail="Unauthorized")
    claims = decode_access_token(credentials.credentials)
    return _sync_user(db, claims)


CurrentUserDep = Depends(current_user)


def canvas_service(db: Session = DbSessionDep, storage: StorageClient = StorageDep) -> CanvasService:
    return CanvasService(db, storage)


def asset_service(db: Session = DbSessionDep, storage: StorageClient = StorageDep) -> AssetService:
    return AssetService(
        db,
        storage,
        max_upload_bytes=settings.max_upload_bytes,
        url_ttl_seconds=settings.presigned_url_ttl_seconds,
    )


CanvasServiceDep = Depends(canvas_service)
AssetServiceDep = Depends(asset_service)
