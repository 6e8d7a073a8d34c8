"""Service abstractions for the Asesor application."""

from .agents import (
    AgentClient,
    AgentConfigurationError,
    AgentError,
    AgentRateLimitError,
    AgentServerError,
    LangflowAgentClient,
)
from .analysis import AnalysisError, AnalysisReport, ThesisAnalyzer, format_in_text_citation
from .autosave import AutoSaver, AutoSaveSession
from .chunker import chunk_document, join_chunks
from .documents import DocumentFormatError, DocumentService, load_document
from .parser import parse_citation
from .pipeline import DocumentIngestPipeline, IngestOutcome
from .reconciler import (
    InvalidReferenceError,
    ReferenceReconciler,
    SyncResult,
    author_contains_match,
    validate_reference,
)
from .scanner import scan_agent_output, scan_document_text
from .storage import ChunkStore, LocalDocumentStore, LocalReferenceStore, ReferenceStore

__all__ = [
    "AgentClient",
    "AgentConfigurationError",
    "AgentError",
    "AgentRateLimitError",
    "AgentServerError",
    "LangflowAgentClient",
    "AnalysisError",
    "AnalysisReport",
    "ThesisAnalyzer",
    "format_in_text_citation",
    "AutoSaver",
    "AutoSaveSession",
    "chunk_document",
    "join_chunks",
    "DocumentFormatError",
    "DocumentService",
    "load_document",
    "parse_citation",
    "DocumentIngestPipeline",
    "IngestOutcome",
    "InvalidReferenceError",
    "ReferenceReconciler",
    "SyncResult",
    "author_contains_match",
    "validate_reference",
    "scan_agent_output",
    "scan_document_text",
    "ChunkStore",
    "LocalDocumentStore",
    "LocalReferenceStore",
    "ReferenceStore",
]
