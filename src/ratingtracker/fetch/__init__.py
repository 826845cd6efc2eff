"""Fetching provider attributes for many stocks under partial failure."""

from ratingtracker.fetch.base import (
    AttributeFailure,
    BulkExtractor,
    ExtractionError,
    ExtractionResult,
    IndividualExtractor,
    RawSnapshot,
    UpstreamUnavailableError,
)
from ratingtracker.fetch.http import get_json, get_text
from ratingtracker.fetch.orchestrator import (
    FetchAbortedError,
    FetchFailedError,
    FetchOrchestrator,
    FetchReport,
)
from ratingtracker.fetch.workspace import FetchWorkspace

__all__ = [
    "AttributeFailure",
    "BulkExtractor",
    "ExtractionError",
    "ExtractionResult",
    "IndividualExtractor",
    "RawSnapshot",
    "UpstreamUnavailableError",
    "get_json",
    "get_text",
    "FetchAbortedError",
    "FetchFailedError",
    "FetchOrchestrator",
    "FetchReport",
    "FetchWorkspace",
]
