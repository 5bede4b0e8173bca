from __future__ import annotations


class PipelineError(Exception):
    """Base class for failures scoped to a single pipeline action."""


class ValidationError(PipelineError):
    pass


class InvalidTransition(ValidationError):
    def __init__(self, entity: str, current: str, target: str) -> None:
        super().__init__(f"{entity} cannot move from {current} to {target}")
        self.entity = entity
        self.current = current
        self.target = target


class GenerationError(PipelineError):
    pass


class PersistenceError(PipelineError):
    pass


class RecordNotFound(PersistenceError):
    def __init__(self, entity: str, key: object) -> None:
        super().__init__(f"{entity} not found: {key}")
        self.entity = entity
        self.key = key


class NotReadyError(PipelineError):
    """Raised when a video submission is blocked by unresolved asset requirements."""

    def __init__(self, missing: list[str]) -> None:
        if missing:
            detail = "missing required assets: " + ", ".join(missing)
        else:
            detail = "template declares no asset requirements"
        super().__init__(detail)
        self.missing = missing
