"""Server -> client ``run`` event payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class OutputChunk:
    """One piece of sandbox output tagged with a unique id."""

    text: str
    chunk_id: str = field(default_factory=lambda: str(uuid4()))


class RunEvent(BaseModel):
    """A ``run`` event. Unset fields are left out of the wire frame."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    status: int = Field(description="HTTP-like status code of the event.")
    message: str | None = Field(
        default=None,
        description="Progress narration or failure message.",
    )
    stdout: str | None = Field(
        default=None,
        description="One chunk of combined stdout/stderr.",
    )
    stdout_id: str | None = Field(
        default=None,
        alias="stdoutID",
        description="Unique id of the chunk for client-side ordering and de-duplication.",
    )
    running: bool | None = Field(
        default=None,
        description="Whether the sandbox is running after this event.",
    )

    # ------------------------------------------------------------------
    # Constructors for every event the service emits
    # ------------------------------------------------------------------

    @classmethod
    def error(cls, status: int) -> RunEvent:
        return cls(status=status)

    @classmethod
    def progress(cls, message: str, running: bool | None = None) -> RunEvent:
        return cls(status=200, message=message, running=running)

    @classmethod
    def output(cls, chunk: OutputChunk) -> RunEvent:
        return cls(status=200, stdout=chunk.text, stdout_id=chunk.chunk_id, running=True)

    @classmethod
    def stopped(cls) -> RunEvent:
        return cls(status=200, running=False)

    def to_wire(self) -> dict:
        """Serialise with wire field names, dropping unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True)
