"""Workflow job operator: API client, polling state machine, and document jobs.

Public API:
    get_workflow_client() -> WorkflowClient
    JobRunner(client).run(title, description, payload) -> (JobHandle, dict)
    process_document(client, data, file_extension) -> DocumentJobResult
"""

from task_extractor.workflow.client import WorkflowClient, get_workflow_client, reset_client
from task_extractor.workflow.document import build_schema_payload, process_document, unwrap_outputs
from task_extractor.workflow.runner import JobRunner, RunState

__all__ = [
    "build_schema_payload",
    "get_workflow_client",
    "JobRunner",
    "process_document",
    "reset_client",
    "RunState",
    "unwrap_outputs",
    "WorkflowClient",
]
