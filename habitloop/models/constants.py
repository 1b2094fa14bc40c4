"""Constants for habitloop.

This module centralizes all magic numbers and default values used throughout the application.
"""

import re


# Priority bounds (1 = highest, 10 = lowest)
MIN_PRIORITY = 1
MAX_PRIORITY = 10
DEFAULT_PRIORITY = 1

# Day of week convention: 0 = Sunday ... 6 = Saturday
MIN_DAY_OF_WEEK = 0
MAX_DAY_OF_WEEK = 6

# "HH:MM" 24-hour, 00..23 : 00..59
HHMM_RE = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$")

# Definition names
MIN_NAME_LENGTH = 2

# Log fetch fan-out
DEFAULT_FETCH_WORKERS = 8

# HTTP client
DEFAULT_API_URL = "http://localhost:8000/api"
DEFAULT_HTTP_TIMEOUT_SEC = 10
