import logging
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError, StorageError, ValidationError
from app.core.metrics import record_canvas_save, record_storage_delete_failure
from app.core.permissions import PermissionLevel
from app.core.request_context import log_context, scoped_to_caller
from app.db.models import Canvas, CanvasAsset, CanvasShare, User, utcnow
from app.services.audit import record_audit
from app.services.permissions import PermissionEvaluator, effective_level
from app.services.storage import StorageClient


logger = logging.getLogger(__name__)


@dataclass
class CanvasListItem:
    canvas: Canvas
    is_owner: bool
    permission: PermissionLevel


@dataclass
class CanvasPage:
    items: list[CanvasListItem]
    total_count: int


class CanvasService:
    def __init__(self, db: Session, storage: StorageClient | None = None):
        self.db = db
        self.storage = storage
        self.permissions = PermissionEvaluator(db)

    @scoped_to_caller
    def create_canvas(
        self,
        owner_id: str,
        name: str,
        description: str | None = None,
        is_public: bool = False,
    ) -> Canvas:
        canvas = Canvas(
            owner_id=owner_id,
            name=name,
            description=description,
            is_public=is_public,
            document_data={},
            session_data={},
            version=1,
        )
        self.db.add(canvas)
        self.db.flush()
        record_audit(
            self.db,
            "canvas",
            canvas.canvas_id,
            "created",
            actor_user_id=owner_id,
            new_value={"name": name, "is_public": is_public},
        )
        self.db.commit()
        self.db.refresh(canvas)
        logger.info("canvas_created", extra={"canvas_id": str(canvas.canvas_id)})
        return canvas

    @scoped_to_caller
    def save_canvas(
        self,
        user_id: str,
        canvas_id: uuid.UUID,
        document: dict[str, Any],
        session: dict[str, Any] | None = None,
        name: str | None = None,
        description: str | None = None,
        thumbnail_url: str | None = None,
    ) -> Canvas:
        with log_context(canvas_id=canvas_id):
            self.permissions.require(user_id, canvas_id, PermissionLevel.EDIT)

            values: dict[str, Any] = {
                "document_data": document,
                # Incremented in SQL so concurrent saves never reuse a version.
                "version": Canvas.version + 1,
                "updated_at": utcnow(),
            }
            if session is not None:
                values["session_data"] = session
            if name:
                values["name"] = name
            if description is not None:
                values["description"] = description
            if thumbnail_url is not None:
                values["thumbnail_url"] = thumbnail_url

            self.db.execute(
                update(Canvas)
                .where(Canvas.canvas_id == canvas_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()

            canvas = self.db.get(Canvas, canvas_id, populate_existing=True)
            if canvas is None:
                raise NotFoundError("canvas", canvas_id)
            record_canvas_save()
            logger.info("canvas_saved", extra={"version": canvas.version})
            return canvas

    @scoped_to_caller
    def load_canvas(self, user_id: str, canvas_id: uuid.UUID) -> tuple[Canvas, list[CanvasAsset]]:
        canvas = self.permissions.require(user_id, canvas_id, PermissionLevel.VIEW)
        assets = list(
            self.db.execute(
                select(CanvasAsset)
                .where(CanvasAsset.canvas_id == canvas_id)
                .order_by(CanvasAsset.created_at.desc())
            )
            .scalars()
            .all()
        )
        return canvas, assets

    @scoped_to_caller
    def list_canvases(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        include_shared: bool = True,
    ) -> CanvasPage:
        if page < 1 or limit < 1 or limit > 100:
            raise ValidationError("invalid pagination parameters")

        if include_shared:
            visible = or_(
                Canvas.owner_id == user_id,
                Canvas.is_public.is_(True),
                Canvas.shares.any(CanvasShare.grantee_user_id == user_id),
            )
        else:
            visible = Canvas.owner_id == user_id

        total_count = self.db.execute(select(func.count()).select_from(Canvas).where(visible)).scalar_one()
        canvases = list(
            self.db.execute(
                select(Canvas)
                .where(visible)
                .order_by(Canvas.updated_at.desc(), Canvas.canvas_id)
                .offset((page - 1) * limit)
                .limit(limit)
            )
            .scalars()
            .all()
        )

        shares_by_canvas: dict[uuid.UUID, CanvasShare] = {}
        if canvases:
            shares = self.db.execute(
                select(CanvasShare).where(
                    CanvasShare.grantee_user_id == user_id,
                    CanvasShare.canvas_id.in_([c.canvas_id for c in canvases]),
                )
            ).scalars()
            shares_by_canvas = {share.canvas_id: share for share in shares}

        items = []
        for canvas in canvases:
            level = effective_level(canvas, shares_by_canvas.get(canvas.canvas_id), user_id)
            items.append(
                CanvasListItem(
                    canvas=canvas,
                    is_owner=canvas.owner_id == user_id,
                    permission=level or PermissionLevel.VIEW,
                )
            )
        return CanvasPage(items=items, total_count=int(total_count))

    @scoped_to_caller
    def update_visibility(self, user_id: str, canvas_id: uuid.UUID, is_public: bool) -> Canvas:
        canvas = self.permissions.require(user_id, canvas_id, PermissionLevel.ADMIN)
        previous = canvas.is_public
        if previous != is_public:
            canvas.is_public = is_public
            record_audit(
                self.db,
                "canvas",
                canvas_id,
                "visibility_changed",
                actor_user_id=user_id,
                old_value={"is_public": previous},
                new_value={"is_public": is_public},
            )
            self.db.commit()
            self.db.refresh(canvas)
        return canvas

    @scoped_to_caller
    def delete_canvas(self, user_id: str, canvas_id: uuid.UUID) -> None:
        with log_context(canvas_id=canvas_id):
            canvas = self.permissions.require(user_id, canvas_id, PermissionLevel.ADMIN)
            storage_keys = [asset.storage_key for asset in canvas.assets]
            name = canvas.name

            self.db.delete(canvas)
            record_audit(
                self.db,
                "canvas",
                canvas_id,
                "deleted",
                actor_user_id=user_id,
                old_value={"name": name, "asset_count": len(storage_keys)},
            )
            self.db.commit()

            if self.storage is not None:
                for key in storage_keys:
                    try:
                        self.storage.delete_object(key)
                    except StorageError:
                        record_storage_delete_failure("delete_canvas")
                        logger.warning("canvas_asset_remote_delete_failed", extra={"storage_key": key}, exc_info=True)

            logger.info("canvas_deleted", extra={"asset_count": len(storage_keys)})

    def _owned_canvas_or_404(self, owner_id: str, canvas_id: uuid.UUID) -> Canvas:
        canvas = self.db.execute(
            select(Canvas).where(Canvas.canvas_id == canvas_id, Canvas.owner_id == owner_id)
        ).scalar_one_or_none()
        if canvas is None:
            raise NotFoundError("canvas", canvas_id)
        return canvas

    @scoped_to_caller
    def share_canvas(
        self,
        owner_id: str,
        canvas_id: uuid.UUID,
        target_user_id: str,
        permission_level: PermissionLevel,
    ) -> CanvasShare:
        self._owned_canvas_or_404(owner_id, canvas_id)
        if target_user_id == owner_id:
            raise ValidationError("cannot share a canvas with its owner")
        if self.db.get(User, target_user_id) is None:
            raise NotFoundError("user", target_user_id)

        share = self.db.execute(
            select(CanvasShare).where(
                CanvasShare.canvas_id == canvas_id,
                CanvasShare.grantee_user_id == target_user_id,
            )
        ).scalar_one_or_none()
        previous = share.permission_level.value if share is not None else None
        if share is None:
            share = CanvasShare(
                canvas_id=canvas_id,
                grantee_user_id=target_user_id,
                permission_level=permission_level,
                granted_by_user_id=owner_id,
            )
            self.db.add(share)
            self.db.flush()
        else:
            share.permission_level = permission_level

        record_audit(
            self.db,
            "canvas_share",
            share.share_id,
            "granted",
            actor_user_id=owner_id,
            old_value={"permission_level": previous} if previous else None,
            new_value={
                "canvas_id": str(canvas_id),
                "grantee_user_id": target_user_id,
                "permission_level": permission_level.value,
            },
        )
        self.db.commit()
        self.db.refresh(share)
        return share

    @scoped_to_caller
    def remove_share(self, owner_id: str, canvas_id: uuid.UUID, target_user_id: str) -> None:
        self._owned_canvas_or_404(owner_id, canvas_id)
        share = self.db.execute(
            select(CanvasShare).where(
                CanvasShare.canvas_id == canvas_id,
                CanvasShare.grantee_user_id == target_user_id,
            )
        ).scalar_one_or_none()
        if share is None:
            raise NotFoundError("share", target_user_id)

        share_id = share.share_id
        level = share.permission_level.value
        self.db.delete(share)
        record_audit(
            self.db,
            "canvas_share",
            share_id,
            "revoked",
            actor_user_id=owner_id,
            old_value={
                "canvas_id": str(canvas_id),
                "grantee_user_id": target_user_id,
                "permission_level": level,
            },
        )
        self.db.commit()

    @scoped_to_caller
    def list_shares(self, owner_id: str, canvas_id: uuid.UUID) -> list[CanvasShare]:
        self._owned_canvas_or_404(owner_id, canvas_id)
        return list(
            self.db.execute(
                select(CanvasShare)
                .where(CanvasShare.canvas_id == canvas_id)
                .order_by(CanvasShare.created_at.asc())
            )
            .scalars()
            .all()
        )
