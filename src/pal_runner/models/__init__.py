"""Wire models for the runner's WebSocket protocol."""

from pal_runner.models.commands import StartCommand, StdinCommand, StopCommand
from pal_runner.models.events import OutputChunk, RunEvent

__all__ = [
    "OutputChunk",
    "RunEvent",
    "StartCommand",
    "StdinCommand",
    "StopCommand",
]
