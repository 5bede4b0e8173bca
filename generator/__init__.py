from .client import GenerationConfig, MediaClient, PromptClient, RenderClient, load_generation_config
from .prompts import build_request, fallback_prompt_groups, generate_prompt_groups
from .types import GenerationRequest, PromptGroup

__all__ = [
    "GenerationConfig",
    "GenerationRequest",
    "MediaClient",
    "PromptClient",
    "PromptGroup",
    "RenderClient",
    "build_request",
    "fallback_prompt_groups",
    "generate_prompt_groups",
    "load_generation_config",
]
