from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import os
from typing import Any
from urllib import request as urlrequest
from urllib.error import HTTPError, URLError

from generator.types import GenerationRequest, PromptGroup
from pipeline.errors import GenerationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationConfig:
    base_url: str
    api_key: str
    timeout_s: float


def load_generation_config() -> GenerationConfig:
    base_url = os.getenv("GENERATION_API_BASE_URL", "http://localhost:3000")
    return GenerationConfig(
        base_url=base_url.rstrip("/"),
        api_key=os.getenv("GENERATION_API_KEY", "").strip(),
        timeout_s=float(os.getenv("GENERATION_API_TIMEOUT_S", "60")),
    )


def post_json(config: GenerationConfig, path: str, payload: dict[str, Any]) -> dict[str, Any]:
    headers = {"Content-Type": "application/json"}
    if config.api_key:
        headers["Authorization"] = f"Bearer {config.api_key}"
    req = urlrequest.Request(
        url=f"{config.base_url}{path}",
        data=json.dumps(payload).encode("utf-8"),
        method="POST",
        headers=headers,
    )
    try:
        with urlrequest.urlopen(req, timeout=config.timeout_s) as resp:
            body = resp.read().decode("utf-8")
    except HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="replace")
        raise GenerationError(f"generation API error: {exc.code} {detail}") from exc
    except URLError as exc:
        raise GenerationError(f"generation API unreachable: {exc}") from exc
    except TimeoutError as exc:
        raise GenerationError(f"generation API timed out after {config.timeout_s}s on {path}") from exc
    except OSError as exc:
        raise GenerationError(f"generation API connection failed: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise GenerationError(f"generation API returned undecodable body for {path}") from exc
    try:
        data = json.loads(body)
    except json.JSONDecodeError as exc:
        raise GenerationError(f"generation API returned invalid JSON for {path}") from exc
    if not isinstance(data, dict):
        raise GenerationError(f"generation API returned {type(data).__name__} for {path}")
    return data


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [str(item) for item in value if str(item).strip()]


def parse_prompt_groups(data: dict[str, Any], aspect_ratio: str) -> list[PromptGroup]:
    """Turn ``{prompts: {safeZone: {images, metadata}}}`` into prompt groups.

    Per-zone payloads may also carry explicit ``backgrounds``/``characters``/
    ``props``/``voiceover``/``music`` keys; plain ``images`` count as backgrounds.
    """
    prompts = data.get("prompts")
    if not isinstance(prompts, dict) or not prompts:
        raise GenerationError("generation API response missing prompts")

    groups: list[PromptGroup] = []
    for safe_zone, payload in prompts.items():
        if not isinstance(payload, dict):
            raise GenerationError(f"prompts for {safe_zone} must be an object")
        metadata = payload.get("metadata") or {}
        group = PromptGroup(
            safe_zone=safe_zone,
            aspect_ratio=metadata.get("aspectRatio") or aspect_ratio,
            backgrounds=_as_list(payload.get("backgrounds")) + _as_list(payload.get("images")),
            characters=_as_list(payload.get("characters")),
            props=_as_list(payload.get("props")),
            voiceover=payload.get("voiceover") or None,
            music=payload.get("music") or None,
            metadata=metadata,
        )
        if not group.is_empty():
            groups.append(group)
    if not groups:
        raise GenerationError("generation API returned no usable prompts")
    return groups


class PromptClient:
    def __init__(self, config: GenerationConfig | None = None) -> None:
        self.config = config or load_generation_config()

    def generate_prompts(self, request: GenerationRequest) -> list[PromptGroup]:
        data = post_json(self.config, "/api/prompts/generate", request.to_payload())
        return parse_prompt_groups(data, request.aspect_ratio)


class MediaClient:
    def __init__(self, config: GenerationConfig | None = None) -> None:
        self.config = config or load_generation_config()

    def generate_asset(self, asset_id: str, asset_type: str, prompt: str, metadata: dict) -> str:
        data = post_json(
            self.config,
            "/api/assets/generate",
            {"assetId": asset_id, "type": asset_type, "prompt": prompt, "metadata": metadata},
        )
        url = data.get("file_url") or data.get("url")
        if not url:
            raise GenerationError(f"no file url returned for asset {asset_id}")
        return str(url)


class RenderClient:
    def __init__(self, config: GenerationConfig | None = None) -> None:
        self.config = config or load_generation_config()

    def submit(self, job_id: str, template_id: str | None, segments: list[dict]) -> str:
        data = post_json(
            self.config,
            "/api/videos/generate",
            {"job_id": job_id, "template_id": template_id, "assets": segments},
        )
        render_id = data.get("render_id") or data.get("renderId") or data.get("job_id")
        if not render_id:
            raise GenerationError(f"renderer did not return a render id for job {job_id}")
        logger.info("render submitted job=%s render_id=%s", job_id, render_id)
        return str(render_id)
