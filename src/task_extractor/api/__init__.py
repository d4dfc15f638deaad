"""HTTP surface: channel processing, job lookup, and document upload routes."""

from task_extractor.api.router import router

__all__ = ["router"]
