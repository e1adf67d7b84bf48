"""Pydantic v2 schemas for video generation requests and job views."""

from __future__ import annotations

from pydantic import BaseModel, Field


class GenerateRequest(BaseModel):
    """Schema for dispatching a three-variation generation."""

    prompt: str = Field(..., min_length=1, max_length=2000)
    image_url: str | None = None
    style: str | None = Field(None, max_length=500)
    duration: int = Field(5, ge=1, le=10)
    aspect_ratio: str = "16:9"


class DispatchedJob(BaseModel):
    job_id: str
    variation: int
    provider: str
    task_id: str
    state: str


class GenerateResponse(BaseModel):
    message: str
    parent_id: str
    total_cost: int
    jobs: list[DispatchedJob]


class JobRead(BaseModel):
    """Schema for reading a job after a status refresh."""

    id: str
    parent_id: str
    variation_index: int
    provider: str
    provider_task_id: str
    prompt: str
    status: str
    progress: int
    provider_url: str | None = None
    thumbnail_url: str | None = None
    durable_url: str | None = None
    migrated: bool = False
    failure_reason: str | None = None
    error: str | None = None
    migration_error: str | None = None

    model_config = {"from_attributes": True}


class StatusResponse(BaseModel):
    parent_id: str
    jobs: list[JobRead]
    all_terminal: bool


class DownloadResponse(BaseModel):
    download_url: str
    expires_in: int | None = None
    source: str
