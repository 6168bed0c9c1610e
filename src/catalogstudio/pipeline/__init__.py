"""Ingestion and batch-action pipeline."""

from .actions import BatchActionOrchestrator
from .handles import HandleRegistry, ResourceLifecycleManager
from .ingest import IngestionOrchestrator
from .normalize import Normalizer, encode_jpeg
from .settle import Settled, require_successes, settle_all, successes
from .state import PipelineStateMachine
from .store import AssetRecordStore

__all__ = [
    "AssetRecordStore",
    "BatchActionOrchestrator",
    "HandleRegistry",
    "IngestionOrchestrator",
    "Normalizer",
    "PipelineStateMachine",
    "ResourceLifecycleManager",
    "Settled",
    "encode_jpeg",
    "require_successes",
    "settle_all",
    "successes",
]
