"""Task extraction payloads and result normalization.

Public API:
    build_message_payload(messages, existing_tasks, channel_name) -> dict
    normalize_results(raw, message_count, channel_name, processing_time_ms) -> TaskExtractionResult
"""

from task_extractor.extraction.normalizer import normalize_results
from task_extractor.extraction.payload import build_message_payload

__all__ = [
    "build_message_payload",
    "normalize_results",
]
