"""Init file for AI services."""

from .gateway import ModelGateway, get_model_gateway
from .orchestrator import GenerationRun, orchestrate, orchestrate_from_context


__all__ = [
    "GenerationRun",
    "ModelGateway",
    "get_model_gateway",
    "orchestrate",
    "orchestrate_from_context",
]
