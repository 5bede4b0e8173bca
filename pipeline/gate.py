"""Readiness check for video templates.

A template lists asset requirements in ``global_elements`` and in each part's
``required_assets``. Every requirement is either a specific asset id or an
asset class (a ``metadata.audio_class`` tag) resolved late against the newest
approved asset carrying that tag.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union
from uuid import UUID

from db.models import Asset, VideoTemplate
from pipeline.assets import AssetStore
from pipeline.errors import NotReadyError, ValidationError


@dataclass(frozen=True)
class SpecificAsset:
    asset_id: UUID
    description: str | None = None

    @property
    def label(self) -> str:
        return self.description or f"Asset {self.asset_id}"


@dataclass(frozen=True)
class AssetClass:
    tag: str
    description: str | None = None
    asset_type: str = "audio"

    @property
    def label(self) -> str:
        return f"{self.tag} ({self.description or 'any approved asset'})"


Requirement = Union[SpecificAsset, AssetClass]


@dataclass(frozen=True)
class RequirementCheck:
    requirement: Requirement
    asset: Asset | None

    @property
    def missing(self) -> bool:
        return self.asset is None

    @property
    def label(self) -> str:
        return self.requirement.label


def parse_requirement(descriptor: dict) -> Requirement | None:
    """Descriptors without an id or class are skipped rather than failing."""
    kind = descriptor.get("asset_type")
    description = descriptor.get("description") or None
    if kind == "specific" and descriptor.get("specific_asset_id"):
        try:
            asset_id = UUID(str(descriptor["specific_asset_id"]))
        except ValueError as exc:
            raise ValidationError(f"invalid specific_asset_id: {descriptor['specific_asset_id']}") from exc
        return SpecificAsset(asset_id, description)
    if kind == "class" and descriptor.get("asset_class"):
        return AssetClass(
            str(descriptor["asset_class"]),
            description,
            descriptor.get("class_asset_type") or "audio",
        )
    return None


def template_requirements(template: VideoTemplate) -> list[Requirement]:
    descriptors: list[dict] = list(template.global_elements or [])
    for part in template.parts or []:
        descriptors.extend(part.get("required_assets") or [])
    parsed = (parse_requirement(item) for item in descriptors if isinstance(item, dict))
    return [req for req in parsed if req is not None]


def is_ready(checks: Iterable[RequirementCheck]) -> bool:
    checks = list(checks)
    return len(checks) > 0 and not any(check.missing for check in checks)


def missing_labels(checks: Iterable[RequirementCheck]) -> list[str]:
    return [check.label for check in checks if check.missing]


class ApprovalGate:
    def __init__(self, assets: AssetStore) -> None:
        self._assets = assets

    def resolve(self, requirement: Requirement) -> Asset | None:
        if isinstance(requirement, SpecificAsset):
            return self._assets.get_approved(requirement.asset_id)
        return self._assets.find_approved_by_class(requirement.tag, requirement.asset_type)

    def validate(self, template: VideoTemplate) -> list[RequirementCheck]:
        return [RequirementCheck(req, self.resolve(req)) for req in template_requirements(template)]

    def ensure_ready(self, template: VideoTemplate) -> list[RequirementCheck]:
        checks = self.validate(template)
        if not is_ready(checks):
            raise NotReadyError(missing_labels(checks))
        return checks
