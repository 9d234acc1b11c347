"""Structured events published while generating wallpapers."""

from dataclasses import dataclass
from typing import Optional

from .generation import GenerationRequest, LayerTag


@dataclass(frozen=True)
class GenerationStarted:
    epoch: int
    request: GenerationRequest


@dataclass(frozen=True)
class GenerationCompleted:
    epoch: int
    request: GenerationRequest
    elapsed_seconds: float


@dataclass(frozen=True)
class GenerationFailed:
    epoch: int
    request: GenerationRequest
    error: str


@dataclass(frozen=True)
class GenerationSuperseded:
    """A finished result was not applied because a newer request is pending."""

    epoch: int
    latest_epoch: int


@dataclass(frozen=True)
class RequestCoalesced:
    """A request arrived mid-generation and replaced any earlier pending one."""

    epoch: int
    request: GenerationRequest


@dataclass(frozen=True)
class LayerDegraded:
    """A layer came back with fewer tiles than requested (possibly none)."""

    layer: LayerTag
    fetched: int
    requested: int
    reason: Optional[str] = None


GenerationEvent = (
    GenerationStarted
    | GenerationCompleted
    | GenerationFailed
    | GenerationSuperseded
    | RequestCoalesced
    | LayerDegraded
)
