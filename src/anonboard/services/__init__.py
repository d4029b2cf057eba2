# src/anonboard/services/__init__.py
"""Ports and the services built on them."""

from .assembly import build_ports
from .identity import SimpleIdentityProvider
from .ingestion import IngestionResult, PostIngestionPipeline, Submission
from .media import LocalMediaStore
from .ports import BoardRepository, IdentityProvider, MediaStore, Ports

__all__ = [
    "BoardRepository",
    "IdentityProvider",
    "IngestionResult",
    "LocalMediaStore",
    "MediaStore",
    "Ports",
    "PostIngestionPipeline",
    "SimpleIdentityProvider",
    "Submission",
    "build_ports",
]
