"""Shared pydantic base for models that travel as camelCase JSON."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Model whose JSON keys are camelCase while Python attributes stay snake_case.

    Model responses, extension payloads and SSE payloads all use camelCase on
    the wire; `populate_by_name` keeps construction from Python ergonomic.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
