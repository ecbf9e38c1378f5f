"""
Canvas permission evaluation.

Lookups return a `Result` so database failures stay inspectable; the boolean
`check_permission` collapses any failure into a deny.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import AppError, NotFoundError, PermissionDeniedError
from app.core.metrics import record_permission_check
from app.core.permissions import PermissionLevel, max_level
from app.core.result import Err, Ok, Result
from app.db.models import Canvas, CanvasShare

logger = logging.getLogger(__name__)


class AccessLookupError(AppError):
    """A permission lookup could not be completed."""


@dataclass(frozen=True)
class AccessGrant:
    canvas: Canvas | None
    level: PermissionLevel | None

    @property
    def exists(self) -> bool:
        return self.canvas is not None

    def allows(self, required: PermissionLevel) -> bool:
        return self.level is not None and self.level.satisfies(required)


def effective_level(canvas: Canvas, share: CanvasShare | None, user_id: str) -> PermissionLevel | None:
    """Highest level `user_id` holds on `canvas`, or None for no access."""
    if canvas.owner_id == user_id:
        return PermissionLevel.ADMIN
    share_level = share.permission_level if share is not None else None
    public_level = PermissionLevel.VIEW if canvas.is_public else None
    return max_level(share_level, public_level)


class PermissionEvaluator:
    def __init__(self, db: Session):
        self.db = db

    def lookup_access(self, user_id: str, canvas_id: uuid.UUID) -> Result[AccessGrant, AccessLookupError]:
        try:
            canvas = self.db.get(Canvas, canvas_id)
            if canvas is None:
                return Ok(AccessGrant(canvas=None, level=None))
            share = self.db.execute(
                select(CanvasShare).where(
                    CanvasShare.canvas_id == canvas_id,
                    CanvasShare.grantee_user_id == user_id,
                )
            ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            error = AccessLookupError(f"permission lookup failed for canvas {canvas_id}")
            error.__cause__ = exc
            return Err(error)
        return Ok(AccessGrant(canvas=canvas, level=effective_level(canvas, share, user_id)))

    def _resolve(self, user_id: str, canvas_id: uuid.UUID, required: PermissionLevel) -> AccessGrant:
        result = self.lookup_access(user_id, canvas_id)
        if isinstance(result, Err):
            cause = result.error.__cause__
            logger.warning(
                "permission_lookup_failed",
                extra={"canvas_id": str(canvas_id), "required": required.value},
                exc_info=(type(cause), cause, cause.__traceback__) if cause is not None else None,
            )
            record_permission_check(required.value, "error")
            return AccessGrant(canvas=None, level=None)
        grant = result.value
        record_permission_check(required.value, "allow" if grant.allows(required) else "deny")
        return grant

    def check_permission(self, user_id: str, canvas_id: uuid.UUID, required: PermissionLevel) -> bool:
        return self._resolve(user_id, canvas_id, required).allows(required)

    def require(self, user_id: str, canvas_id: uuid.UUID, required: PermissionLevel) -> Canvas:
        """Return the canvas or raise.

        Callers without even VIEW access get NOT_FOUND so the canvas's
        existence is not disclosed; callers who can see it but lack
        `required` get PERMISSION_DENIED.
        """
        grant = self._resolve(user_id, canvas_id, required)
        if grant.canvas is None or grant.level is None:
            raise NotFoundError("canvas", canvas_id)
        if not grant.allows(required):
            raise PermissionDeniedError(
                f"{required.value} permission required on canvas {canvas_id}",
                detail=f"insufficient permissions: {required.value} required",
            )
        return grant.canvas
