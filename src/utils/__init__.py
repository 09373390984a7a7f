"""
Utility functions and helper classes
"""

from .rate_limiter import RateLimiter
from .schema_analyzer import SchemaAnalyzer

__all__ = [
    'RateLimiter',
    'SchemaAnalyzer'
]
