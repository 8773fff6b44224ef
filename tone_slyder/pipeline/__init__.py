"""
Rewrite pipeline.

Composes the core modules into the end-to-end request lifecycle.
"""

from .orchestrator import (
    BatchResult,
    QuotaExceededError,
    RewritePipeline,
    RewriteRequest,
    RewriteResult,
)

__all__ = [
    "BatchResult",
    "QuotaExceededError",
    "RewritePipeline",
    "RewriteRequest",
    "RewriteResult",
]
