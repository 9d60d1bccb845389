"""
Resilience package.
"""
from .retry import RetryPolicy, wait_until

__all__ = [
    "RetryPolicy",
    "wait_until",
]
