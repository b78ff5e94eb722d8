"""Client -> server command payloads."""

from __future__ import annotations

from typing import Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pal_runner.errors import InvalidRequest


class _Command(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_payload(cls, data: object) -> Self:
        """Validate a raw payload, raising :class:`InvalidRequest` on any failure."""
        if not isinstance(data, dict):
            raise InvalidRequest(f"{cls.__name__} payload must be an object")
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise InvalidRequest(str(exc)) from exc


class StartCommand(_Command):
    """Payload of the ``start`` command."""

    project_id: str = Field(alias="projectId", min_length=1)
    language: str = Field(min_length=1)
    school_id: str = Field(alias="schoolId", min_length=1)


class StdinCommand(_Command):
    """Payload of the ``stdin`` command."""

    project_id: str = Field(alias="projectId", min_length=1)
    stdin: str = Field(min_length=1)


class StopCommand(_Command):
    """Payload of the ``stop`` command."""

    project_id: str = Field(alias="projectId", min_length=1)
