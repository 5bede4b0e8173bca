from __future__ import annotations

from uuid import uuid4

import pytest

from db.models import Asset, VideoTemplate
from pipeline.errors import NotReadyError, ValidationError
from pipeline.gate import (
    ApprovalGate,
    AssetClass,
    SpecificAsset,
    is_ready,
    missing_labels,
    parse_requirement,
    template_requirements,
)


def _asset(session_factory, **fields) -> Asset:
    with session_factory() as session:
        asset = Asset(**{"type": "audio", "status": "approved", **fields})
        session.add(asset)
        session.commit()
        session.refresh(asset)
        return asset


def _template(global_elements=None, parts=None) -> VideoTemplate:
    return VideoTemplate(
        id=uuid4(),
        name="Lullaby",
        template_type="lullaby",
        global_elements=global_elements or [],
        parts=parts or [],
    )


def test_parse_requirement_shapes() -> None:
    asset_id = uuid4()

    specific = parse_requirement({"asset_type": "specific", "specific_asset_id": str(asset_id)})
    klass = parse_requirement({"asset_type": "class", "asset_class": "background_music", "description": "Music"})

    assert specific == SpecificAsset(asset_id)
    assert specific.label == f"Asset {asset_id}"
    assert klass == AssetClass("background_music", "Music")
    assert klass.label == "background_music (Music)"


def test_parse_requirement_skips_incomplete_descriptors() -> None:
    assert parse_requirement({"asset_type": "specific"}) is None
    assert parse_requirement({"asset_type": "class", "asset_class": ""}) is None
    assert parse_requirement({"asset_type": "video"}) is None


def test_parse_requirement_rejects_bad_uuid() -> None:
    with pytest.raises(ValidationError):
        parse_requirement({"asset_type": "specific", "specific_asset_id": "not-a-uuid"})


def test_template_requirements_collects_globals_and_parts() -> None:
    template = _template(
        global_elements=[{"asset_type": "class", "asset_class": "background_music"}],
        parts=[
            {"name": "intro", "required_assets": [{"asset_type": "class", "asset_class": "intro_audio"}]},
            {"name": "outro"},
        ],
    )

    assert [req.tag for req in template_requirements(template)] == ["background_music", "intro_audio"]


def test_template_without_requirements_is_not_ready(assets) -> None:
    gate = ApprovalGate(assets)
    template = _template()

    checks = gate.validate(template)

    assert checks == []
    assert is_ready(checks) is False
    with pytest.raises(NotReadyError) as exc_info:
        gate.ensure_ready(template)
    assert exc_info.value.missing == []


def test_gate_ready_when_every_requirement_resolves(session_factory, assets) -> None:
    music = _asset(session_factory, asset_metadata={"audio_class": "background_music"})
    cover = _asset(session_factory, type="image")
    template = _template(
        global_elements=[{"asset_type": "class", "asset_class": "background_music"}],
        parts=[{"required_assets": [{"asset_type": "specific", "specific_asset_id": str(cover.id)}]}],
    )

    checks = ApprovalGate(assets).ensure_ready(template)

    assert [check.asset.id for check in checks] == [music.id, cover.id]
    assert missing_labels(checks) == []


def test_rejecting_an_asset_flips_readiness(session_factory, assets) -> None:
    music = _asset(session_factory, asset_metadata={"audio_class": "background_music"})
    template = _template(
        global_elements=[
            {"asset_type": "class", "asset_class": "background_music", "description": "Music"},
        ],
    )
    gate = ApprovalGate(assets)
    assert is_ready(gate.validate(template)) is True

    assets.reject(music.id, reason="off key")
    checks = gate.validate(template)

    assert is_ready(checks) is False
    assert missing_labels(checks) == ["background_music (Music)"]
    with pytest.raises(NotReadyError) as exc_info:
        gate.ensure_ready(template)
    assert exc_info.value.missing == ["background_music (Music)"]


def test_specific_requirement_needs_approved_status(session_factory, assets) -> None:
    pending = _asset(session_factory, status="pending")
    template = _template(
        global_elements=[
            {"asset_type": "specific", "specific_asset_id": str(pending.id), "description": "Title card"},
        ],
    )

    checks = ApprovalGate(assets).validate(template)

    assert missing_labels(checks) == ["Title card"]
