"""genflow: normalized AI image and alt-text generation across providers."""

from genflow.errors import ErrorKind, GenerationError
from genflow.models import (
    Completed,
    Failed,
    GenerationRequest,
    ImageBytes,
    ImageURL,
    Pending,
    Quality,
    Text,
)

__all__ = [
    "Completed",
    "ErrorKind",
    "Failed",
    "GenerationError",
    "GenerationRequest",
    "ImageBytes",
    "ImageURL",
    "Pending",
    "Quality",
    "Text",
]

__version__ = "0.3.0"
