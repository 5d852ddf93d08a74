"""
Request rate limiting (slowapi).

Limits are kept in ``settings.rate_limit_storage_uri``: in-process memory by
default, Redis when several API workers must share one budget.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from bikerental.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.rate_limit_storage_uri,
    enabled=settings.rate_limit_enabled,
)

RATE_LIMIT = settings.rate_limit
