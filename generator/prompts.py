from __future__ import annotations

import logging
from typing import Protocol

from generator.types import (
    VALID_ASPECT_RATIOS,
    VALID_SAFE_ZONES,
    VALID_TEMPLATES,
    GenerationRequest,
    PromptGroup,
)
from pipeline.errors import GenerationError, ValidationError

logger = logging.getLogger(__name__)

MAX_PROMPT_COUNT = 10


class PromptSource(Protocol):
    def generate_prompts(self, request: GenerationRequest) -> list[PromptGroup]: ...


def build_request(
    *,
    theme: str,
    age_range: str,
    template: str = "name-video",
    personalization: str = "general",
    safe_zones: list[str] | tuple[str, ...] | str = ("center_safe",),
    prompt_count: int = 1,
    aspect_ratio: str = "16:9",
    additional_context: str | None = None,
    project_id: str | None = None,
) -> GenerationRequest:
    if not theme or not age_range or not template:
        raise ValidationError("theme, age range and template are required")
    if template not in VALID_TEMPLATES:
        raise ValidationError(f"invalid template: {template}")
    if isinstance(safe_zones, str):
        safe_zones = [safe_zones]
    zones = tuple(zone for zone in safe_zones if zone in VALID_SAFE_ZONES)
    if not zones:
        raise ValidationError("at least one valid safe zone must be selected")
    return GenerationRequest(
        theme=theme,
        age_range=age_range,
        template=template,
        personalization=personalization,
        safe_zones=zones,
        prompt_count=max(1, min(MAX_PROMPT_COUNT, int(prompt_count))),
        aspect_ratio=aspect_ratio if aspect_ratio in VALID_ASPECT_RATIOS else "16:9",
        additional_context=additional_context,
        project_id=project_id,
    )


def fallback_prompt_groups(request: GenerationRequest) -> list[PromptGroup]:
    theme = request.theme
    age = request.age_range
    return [
        PromptGroup(
            safe_zone=zone,
            aspect_ratio=request.aspect_ratio,
            backgrounds=[
                f"Create a colorful, child-friendly background for a {theme} story targeting {age} year olds"
            ],
            characters=[f"Design friendly, animated characters for a {theme} story for {age} year olds"],
            props=[f"Generate fun props and objects related to {theme} for children aged {age}"],
            voiceover=f"Create a warm, engaging voiceover script for a {theme} story for {age} year olds",
            music=f"Compose cheerful background music suitable for a {theme} story for {age} year olds",
            metadata={"source": "fallback"},
        )
        for zone in request.safe_zones
    ]


def generate_prompt_groups(source: PromptSource, request: GenerationRequest) -> list[PromptGroup]:
    try:
        return source.generate_prompts(request)
    except GenerationError as exc:
        logger.warning("prompt generation failed, using templated prompts: %s", exc)
        return fallback_prompt_groups(request)
