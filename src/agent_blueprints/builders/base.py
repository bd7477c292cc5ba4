"""
Base model for definition values.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from agent_blueprints.errors import ConfigurationError


def _describe(error: ValidationError) -> str:
    details = error.errors()[0]
    location = ".".join(str(part) for part in details["loc"])
    return f"{location}: {details['msg']}" if location else details["msg"]


class DefinitionModel(BaseModel):
    """
    Frozen pydantic model whose validation failures are ConfigurationErrors.

    Field constraints (lengths, numeric bounds, enum members) are part of
    the builder contract, so callers only need to handle the package's
    own error hierarchy.
    """

    model_config = ConfigDict(frozen=True)

    def __init__(self, /, **data: Any):
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid {type(self).__name__}: {_describe(e)}") from e

    @classmethod
    def model_validate(cls, obj: Any, *args: Any, **kwargs: Any):
        try:
            return super().model_validate(obj, *args, **kwargs)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid {cls.__name__}: {_describe(e)}") from e
