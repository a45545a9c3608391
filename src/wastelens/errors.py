"""Typed failures raised while classifying an upload.

Each error carries a ``user_message`` safe to show to the person who sent the
image. Bad input and internal failures use different wording so the client
can tell them apart.
"""

from __future__ import annotations


class ClassificationError(Exception):
    """Base class for failures reported back to the client."""

    user_message: str = "Internal error while classifying the image. Please try again."


class InvalidImageError(ClassificationError, ValueError):
    """The upload is not a usable image (undecodable, empty, or too large)."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.user_message = f"The uploaded file is not a usable image: {reason}"


class ClassificationTimeoutError(ClassificationError, TimeoutError):
    """Classification exceeded its wall-clock budget."""

    user_message = "Classification took too long. Please try again with a smaller image."


class PoolBusyError(ClassificationError):
    """No classification slot became free within the queue timeout."""

    user_message = "The classifier is busy. Please retry in a few seconds."
