from __future__ import annotations

from dataclasses import dataclass, field

VALID_SAFE_ZONES = ("left_safe", "right_safe", "center_safe", "frame", "slideshow")
VALID_ASPECT_RATIOS = ("16:9", "9:16")
VALID_TEMPLATES = ("lullaby", "name-video")


@dataclass(frozen=True)
class GenerationRequest:
    theme: str
    age_range: str
    template: str = "name-video"
    personalization: str = "general"
    safe_zones: tuple[str, ...] = ("center_safe",)
    prompt_count: int = 1
    aspect_ratio: str = "16:9"
    additional_context: str | None = None
    project_id: str | None = None

    def to_payload(self) -> dict:
        return {
            "theme": self.theme,
            "ageRange": self.age_range,
            "template": self.template,
            "personalization": self.personalization,
            "safeZones": list(self.safe_zones),
            "promptCount": self.prompt_count,
            "aspectRatio": self.aspect_ratio,
            "additionalContext": self.additional_context,
            "projectId": self.project_id,
        }


@dataclass(frozen=True)
class PromptGroup:
    safe_zone: str
    aspect_ratio: str
    backgrounds: list[str] = field(default_factory=list)
    characters: list[str] = field(default_factory=list)
    props: list[str] = field(default_factory=list)
    voiceover: str | None = None
    music: str | None = None
    metadata: dict = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.backgrounds or self.characters or self.props or self.voiceover or self.music)
