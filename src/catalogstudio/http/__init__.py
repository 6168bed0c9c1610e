"""HTTP plumbing shared by the remote adapters."""

from .retries import compute_backoff, should_retry
from .transport import AsyncHttpTransport

__all__ = [
    "AsyncHttpTransport",
    "compute_backoff",
    "should_retry",
]
