"""
Local development settings.

Extends base settings with development-friendly defaults.
"""

from .base import *  # noqa: F403
from .base import settings

DEBUG = True
ALLOWED_HOSTS = ["localhost", "127.0.0.1"]

# Pretty console logs instead of JSON
configure_logging(json_format=False, log_level=settings.LOG_LEVEL)  # noqa: F405
