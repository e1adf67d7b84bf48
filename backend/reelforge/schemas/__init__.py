"""Pydantic v2 schemas package."""

from reelforge.schemas.generation import (
    DispatchedJob,
    DownloadResponse,
    GenerateRequest,
    GenerateResponse,
    JobRead,
    StatusResponse,
)

__all__ = [
    "DispatchedJob",
    "DownloadResponse",
    "GenerateRequest",
    "GenerateResponse",
    "JobRead",
    "StatusResponse",
]
