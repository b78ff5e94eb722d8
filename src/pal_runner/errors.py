"""Error taxonomy surfaced to clients as ``run`` status codes."""


class RunnerError(Exception):
    """Base class for errors that map onto a ``run`` event status."""

    status: int = 500


class InvalidRequest(RunnerError):
    """A command was malformed, missing fields, or named an unsupported language."""

    status = 400


class NotFound(RunnerError):
    """The project's code could not be fetched from the code store."""

    status = 404


class ProvisionError(RunnerError):
    """The sandbox container could not be created or started."""

    status = 500
