"""
Store Models
============
Quota snapshot returned by the generation rate counter.
"""

from typing import Optional
from dataclasses import dataclass


@dataclass
class RateLimitInfo:
    """Decision for one generation request on a phone and channel."""
    allowed: bool
    remaining: int
    limit: int
    reset_at: int  # Unix timestamp the oldest counted generation leaves the window
    retry_after: Optional[int] = None  # Seconds until a blocked request may retry
