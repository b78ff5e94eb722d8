"""Supported sandbox languages and their runner image tags.

Use :func:`is_valid_language` to check a client-supplied identifier and
:func:`get_tag` to resolve it to the Docker image the sandbox runs.
"""

from __future__ import annotations

from enum import StrEnum


class Language(StrEnum):
    """Languages with a runner image."""

    PYTHON = "python"
    JAVA = "java"
    JAVASCRIPT = "javascript"
    C = "c"
    CPP = "cpp"


DEFAULT_IMAGE_PREFIX = "pal-runner"

_SUPPORTED: frozenset[str] = frozenset(lang.value for lang in Language)


def is_valid_language(language: object) -> bool:
    """Return ``True`` if *language* names a supported runner."""
    return isinstance(language, str) and language in _SUPPORTED


def get_tag(language: str, image_prefix: str = DEFAULT_IMAGE_PREFIX) -> str:
    """Return the image tag for *language*.

    Parameters
    ----------
    language:
        A :class:`Language` value, e.g. ``"python"``.
    image_prefix:
        Repository prefix shared by all runner images.

    Raises
    ------
    ValueError
        If *language* is not supported.
    """
    if not is_valid_language(language):
        raise ValueError(
            f"Unsupported language: {language!r}. "
            f"Supported languages: {sorted(_SUPPORTED)}"
        )
    return f"{image_prefix}-{Language(language).value}:latest"
