"""
Utility modules package.
"""

from .cache import LocalEmbeddingStore
from .timing import format_uptime, retry_with_backoff

__all__ = [
    'LocalEmbeddingStore',
    'format_uptime',
    'retry_with_backoff',
]
