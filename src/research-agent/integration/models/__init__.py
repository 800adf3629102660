"""Integration models for Research Agent."""

from integration.models.model_status_dto import ModelStatusDto

__all__ = [
    "ModelStatusDto",
]
