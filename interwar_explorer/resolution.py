"""Result type distinguishing genuinely resolved values from defaults."""
import logging
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

logger = logging.getLogger("explorer.resolution")

T = TypeVar("T")


@dataclass(frozen=True)
class Resolution(Generic[T]):
    value: T
    fallback: bool = False
    reason: Optional[str] = None

    @classmethod
    def resolved(cls, value: T) -> "Resolution[T]":
        return cls(value)

    @classmethod
    def defaulted(cls, value: T, reason: str) -> "Resolution[T]":
        logger.info("Falling back to %r: %s", value, reason)
        return cls(value, fallback=True, reason=reason)
