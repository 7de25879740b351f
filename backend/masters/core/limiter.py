"""Rate limiter singleton, imported from here to avoid circular deps."""
from slowapi import Limiter
from slowapi.util import get_remote_address

from masters.core.config import settings

# Disabled under tests so repeated uploads from the same client are not throttled.
limiter = Limiter(key_func=get_remote_address, enabled=settings.APP_ENV != "test")
