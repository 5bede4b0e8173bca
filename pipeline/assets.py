from __future__ import annotations

from datetime import UTC, datetime
import logging
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import delete, desc, select

from db.models import Asset, ContentProject
from generator.types import PromptGroup
from pipeline.audit import record_event
from pipeline.errors import RecordNotFound, ValidationError
from pipeline.states import ASSET_MACHINE
from pipeline.store import SessionStore

logger = logging.getLogger(__name__)

IMAGE_CATEGORIES = ("backgrounds", "characters", "props")
AUDIO_CATEGORIES = ("voiceover", "music")


def _category_name(key: str) -> str:
    return {"backgrounds": "background", "characters": "character", "props": "prop"}[key]


def build_asset_rows(
    project: ContentProject,
    prompt_groups: Sequence[PromptGroup],
    template: str = "name-video",
) -> list[Asset]:
    rows: list[Asset] = []
    for group in prompt_groups:
        base_meta = {
            "template": template,
            "safeZone": group.safe_zone,
            "aspectRatio": group.aspect_ratio,
        }
        for key in IMAGE_CATEGORIES:
            for index, prompt in enumerate(getattr(group, key)):
                rows.append(
                    Asset(
                        project_id=project.id,
                        type="image",
                        theme=project.theme,
                        prompt=prompt,
                        status="pending",
                        asset_metadata={"category": _category_name(key), "index": index, **base_meta},
                    )
                )
        for key in AUDIO_CATEGORIES:
            prompt = getattr(group, key)
            if not prompt:
                continue
            rows.append(
                Asset(
                    project_id=project.id,
                    type="audio",
                    theme=project.theme,
                    prompt=prompt,
                    status="pending",
                    asset_metadata={"category": key, **base_meta},
                )
            )
    return rows


def _safe_zones(asset: Asset) -> list[str]:
    review = (asset.asset_metadata or {}).get("review")
    if not isinstance(review, dict):
        return []
    zones = review.get("safe_zone") or []
    if isinstance(zones, str):
        return [zones]
    if not isinstance(zones, list):
        return []
    return [str(zone) for zone in zones]


def _matches_theme(asset: Asset, theme: str) -> bool:
    needle = theme.lower()
    if asset.theme and needle in asset.theme.lower():
        return True
    return needle in [str(tag).lower() for tag in asset.tags or []]


class AssetStore(SessionStore):
    def generate_assets_for_project(
        self,
        project_id: UUID,
        prompt_groups: Sequence[PromptGroup],
        template: str = "name-video",
    ) -> list[Asset]:
        """Insert one pending asset per prompt in a single transaction."""
        with self._session() as session:
            project = session.get(ContentProject, project_id)
            if project is None:
                raise RecordNotFound("project", project_id)
            rows = build_asset_rows(project, prompt_groups, template)
            if not rows:
                raise ValidationError("prompt groups produced no assets")
            session.add_all(rows)
            session.commit()
            for row in rows:
                session.refresh(row)
            logger.info("inserted %d pending assets for project %s", len(rows), project_id)
            return rows

    def get_asset(self, asset_id: UUID) -> Asset:
        with self._session() as session:
            asset = session.get(Asset, asset_id)
            if asset is None:
                raise RecordNotFound("asset", asset_id)
            return asset

    def get_approved(self, asset_id: UUID) -> Asset | None:
        with self._session() as session:
            stmt = select(Asset).where(Asset.id == asset_id, Asset.status == "approved")
            return session.execute(stmt).scalar_one_or_none()

    def list_assets(
        self,
        project_id: UUID | None = None,
        status: str | None = None,
        asset_type: str | None = None,
        limit: int = 200,
        offset: int = 0,
    ) -> list[Asset]:
        with self._session() as session:
            stmt = select(Asset)
            if project_id:
                stmt = stmt.where(Asset.project_id == project_id)
            if status:
                stmt = stmt.where(Asset.status == status)
            if asset_type:
                stmt = stmt.where(Asset.type == asset_type)
            stmt = stmt.order_by(desc(Asset.created_at)).limit(limit).offset(offset)
            return list(session.execute(stmt).scalars().all())

    def pending_for_project(self, project_id: UUID) -> list[Asset]:
        return self.list_assets(project_id=project_id, status="pending")

    def approve(
        self,
        asset_id: UUID,
        reviewer: UUID | None = None,
        notes: str | None = None,
    ) -> Asset:
        with self._session() as session:
            asset = session.get(Asset, asset_id)
            if asset is None:
                raise RecordNotFound("asset", asset_id)
            if not ASSET_MACHINE.check(asset.status, "approved"):
                return asset
            previous = asset.status
            asset.status = "approved"
            asset.approved_by = reviewer
            asset.approved_at = datetime.now(UTC)
            asset.approval_notes = notes
            record_event(
                session,
                "asset_approved",
                {"asset_id": asset.id, "from": previous},
                actor_user_id=reviewer,
            )
            session.commit()
            session.refresh(asset)
            return asset

    def reject(
        self,
        asset_id: UUID,
        reviewer: UUID | None = None,
        reason: str | None = None,
    ) -> Asset:
        with self._session() as session:
            asset = session.get(Asset, asset_id)
            if asset is None:
                raise RecordNotFound("asset", asset_id)
            if not ASSET_MACHINE.check(asset.status, "rejected"):
                return asset
            previous = asset.status
            asset.status = "rejected"
            asset.rejection_reason = reason
            record_event(
                session,
                "asset_rejected",
                {"asset_id": asset.id, "from": previous, "reason": reason},
                actor_user_id=reviewer,
            )
            session.commit()
            session.refresh(asset)
            return asset

    def update_metadata(
        self,
        asset_id: UUID,
        updates: dict,
        tags: Sequence[str] | None = None,
        actor: UUID | None = None,
    ) -> Asset:
        """Merge reviewer edits (audio_class, review.safe_zone, ...) into the asset metadata."""
        if not isinstance(updates, dict):
            raise ValidationError("metadata updates must be an object")
        with self._session() as session:
            asset = session.get(Asset, asset_id)
            if asset is None:
                raise RecordNotFound("asset", asset_id)
            meta = dict(asset.asset_metadata or {})
            for key, value in updates.items():
                if isinstance(value, dict) and isinstance(meta.get(key), dict):
                    meta[key] = {**meta[key], **value}
                elif value is None:
                    meta.pop(key, None)
                else:
                    meta[key] = value
            asset.asset_metadata = meta
            if tags is not None:
                asset.tags = [str(tag).strip() for tag in tags if str(tag).strip()]
            record_event(
                session,
                "asset_metadata_updated",
                {"asset_id": asset.id, "keys": sorted(updates)},
                actor_user_id=actor,
            )
            session.commit()
            session.refresh(asset)
            return asset

    def mark_generating(self, asset_id: UUID) -> Asset:
        return self._transition(asset_id, "generating")

    def mark_completed(self, asset_id: UUID, file_url: str) -> Asset:
        return self._transition(asset_id, "completed", file_url=file_url)

    def mark_generation_failed(self, asset_id: UUID, error: str) -> Asset:
        return self._transition(asset_id, "pending", generation_error=error)

    def _transition(
        self,
        asset_id: UUID,
        target: str,
        *,
        file_url: str | None = None,
        generation_error: str | None = None,
    ) -> Asset:
        with self._session() as session:
            asset = session.get(Asset, asset_id)
            if asset is None:
                raise RecordNotFound("asset", asset_id)
            ASSET_MACHINE.check(asset.status, target)
            asset.status = target
            meta = dict(asset.asset_metadata or {})
            if file_url is not None:
                asset.file_url = file_url
                meta.pop("generation_error", None)
                meta["generated_at"] = datetime.now(UTC).isoformat()
            if generation_error is not None:
                meta["generation_error"] = generation_error
            asset.asset_metadata = meta
            session.commit()
            session.refresh(asset)
            return asset

    def delete_assets(self, asset_ids: Iterable[UUID]) -> int:
        ids = list(asset_ids)
        if not ids:
            return 0
        with self._session() as session:
            result = session.execute(delete(Asset).where(Asset.id.in_(ids)))
            session.commit()
            return int(result.rowcount or 0)

    def find_approved_by_theme_and_safe_zone(self, theme: str, safe_zone_tag: str) -> Asset | None:
        if not theme or not safe_zone_tag:
            return None
        with self._session() as session:
            stmt = (
                select(Asset)
                .where(Asset.type == "image", Asset.status == "approved")
                .order_by(desc(Asset.created_at))
            )
            for asset in session.execute(stmt).scalars():
                if _matches_theme(asset, theme) and safe_zone_tag in _safe_zones(asset):
                    return asset
            return None

    def find_approved_by_class(self, asset_class: str, asset_type: str = "audio") -> Asset | None:
        with self._session() as session:
            stmt = (
                select(Asset)
                .where(
                    Asset.type == asset_type,
                    Asset.status == "approved",
                    Asset.asset_metadata["audio_class"].as_string() == asset_class,
                )
                .order_by(desc(Asset.created_at))
                .limit(1)
            )
            return session.execute(stmt).scalars().first()
