"""Domain exceptions for the page generation pipeline.

Each exception carries a stable `error_code` so the orchestrator can put it
on the `error` SSE event and logs can be grouped without parsing messages.
Only reasoning failures (and anything unexpected) end a run; the other
stages convert their failures into documented fallbacks.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class GenerationError(Exception):
    """Base class for page generation domain errors."""

    message: str
    error_code: str

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.error_code}: {self.message}"


class ModelGatewayError(GenerationError):
    def __init__(self, message: str = "Model provider call failed") -> None:
        super().__init__(message=message, error_code="model_error")


class ReasoningFailure(GenerationError):
    def __init__(self, message: str = "Block selection reasoning failed") -> None:
        super().__init__(message=message, error_code="reasoning_failed")


class OrchestrationError(GenerationError):
    def __init__(self, message: str = "Generation failed") -> None:
        super().__init__(message=message, error_code="ORCHESTRATION_ERROR")


class ContextOrchestrationError(GenerationError):
    def __init__(self, message: str = "Generation from context failed") -> None:
        super().__init__(message=message, error_code="CONTEXT_ORCHESTRATION_ERROR")
