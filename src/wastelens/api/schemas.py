"""Pydantic request/response schemas for the WasteLens API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class CategoryConfidence(BaseModel):
    """A single category with its confidence score."""

    label: str
    confidence: float = Field(ge=0.0, le=1.0)


class DisposalGuidance(BaseModel):
    """The most likely category and how to dispose of it."""

    label: str
    confidence: float = Field(ge=0.0, le=1.0)
    description: str


class ClassifyImageResponse(BaseModel):
    """Response for the image classification endpoint."""

    tags: list[CategoryConfidence] = Field(description="All six categories, highest confidence first")
    top: DisposalGuidance


class CategoryInfo(BaseModel):
    """A waste category and the color signals that score it."""

    name: str
    description: str
    signals: dict[str, float] = Field(description="Signal name to mixing weight")
    gain: float


class CategoriesResponse(BaseModel):
    """Response for the categories listing endpoint."""

    categories: list[CategoryInfo]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    categories: int
    concurrent_requests: int
    queue_depth: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
