"""Model gateway: one fallible text completion per call, addressed by role.

The pipeline stages only know the `ModelGateway` protocol. Retries, model
selection and provider credentials stay behind it, in the model factory.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import lru_cache
from typing import Protocol

from pydantic_ai import Agent, RunContext
from pydantic_ai.models import Model

from schemas.generation import ModelRole
from services.ai.exceptions import ModelGatewayError
from services.ai.model_factory import (
    get_model_for_role,
    resolve_model_name,
    resolve_preset,
)


logger = logging.getLogger(__name__)


class ModelGateway(Protocol):
    async def complete(
        self,
        role: ModelRole,
        system: str,
        user: str,
        *,
        preset: str | None = None,
    ) -> str: ...

    def model_name(self, role: ModelRole, preset: str | None = None) -> str: ...


def _system_from_deps(ctx: RunContext[str]) -> str:
    """System instructions travel per call as the run's deps."""
    return ctx.deps


class PydanticAIGateway:
    """`ModelGateway` backed by one cached pydantic-ai Agent per role and preset."""

    def __init__(
        self,
        model_for_role: Callable[[ModelRole, str | None], Model] = get_model_for_role,
    ) -> None:
        self._model_for_role = model_for_role
        self._agents: dict[tuple[ModelRole, str], Agent[str, str]] = {}

    def _agent(self, role: ModelRole, preset: str) -> Agent[str, str]:
        key = (role, preset)
        agent = self._agents.get(key)
        if agent is None:
            agent = Agent(
                self._model_for_role(role, preset),
                output_type=str,
                deps_type=str,
                name=f"pagecraft-{role}",
            )
            agent.system_prompt(_system_from_deps)
            self._agents[key] = agent
        return agent

    async def complete(
        self,
        role: ModelRole,
        system: str,
        user: str,
        *,
        preset: str | None = None,
    ) -> str:
        """Run one completion and return the raw response text.

        Raises:
            ModelGatewayError: on any provider, configuration or transport failure.
        """
        try:
            agent = self._agent(role, resolve_preset(preset))
            result = await agent.run(user, deps=system)
        except Exception as e:
            logger.warning(f"{role} model call failed: {e}")
            raise ModelGatewayError(f"{role} model call failed: {e}") from e
        return result.output

    def model_name(self, role: ModelRole, preset: str | None = None) -> str:
        return resolve_model_name(role, preset)


@lru_cache
def get_model_gateway() -> ModelGateway:
    """Dependency provider for the process-wide gateway."""
    return PydanticAIGateway()
