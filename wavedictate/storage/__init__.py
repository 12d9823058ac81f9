"""Persistent storage: recording history and downloaded models."""

from .history import RecordingHistory
from .model_store import ModelStore, ModelInfo, MODEL_CATALOG

__all__ = ["RecordingHistory", "ModelStore", "ModelInfo", "MODEL_CATALOG"]
