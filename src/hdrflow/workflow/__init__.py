"""Metadata extraction and injection workflow around the encode."""

from hdrflow.workflow.manager import (
    EncodeCallback,
    ExtractedMetadata,
    MetadataWorkflowManager,
    WorkflowResult,
    WorkflowState,
)

__all__ = [
    "EncodeCallback",
    "ExtractedMetadata",
    "MetadataWorkflowManager",
    "WorkflowResult",
    "WorkflowState",
]
