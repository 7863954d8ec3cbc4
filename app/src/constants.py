"""
Application configuration and constants for the Vehicle Transport Portal.

This module centralizes environment-based configuration, resource limits,
regular expressions, money handling and other constants.

Configuration values can be overridden via environment variables.
"""

from decimal import Decimal
from os import environ


# ---------------------------------------------------------------------------
# Application metadata
# ---------------------------------------------------------------------------
API_TITLE = "Vehicle Transport Portal API"
API_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# PostgreSQL configuration
# ---------------------------------------------------------------------------
PSQL_DB_DRIVER = environ.get("PSQL_DB_DRIVER", "postgresql")
PSQL_DB_USERNAME = environ.get("PSQL_DB_USERNAME", "postgres")
PSQL_DB_PORT = environ.get("PSQL_DB_PORT", "5432")
PSQL_DB_PASSWORD = environ.get("PSQL_DB_PASSWORD", "password")
PSQL_DB_HOST = environ.get("PSQL_DB_HOST", "localhost")
PSQL_DB_NAME = environ.get("PSQL_DB_NAME", "postgres")


# ---------------------------------------------------------------------------
# OpenObserve configuration
# ---------------------------------------------------------------------------
OPENOBSERVE_PROTOCOL = environ.get("OPENOBSERVE_PROTOCOL", "http")
OPENOBSERVE_HOST = environ.get("OPENOBSERVE_HOST", "localhost")
OPENOBSERVE_PORT = environ.get("OPENOBSERVE_PORT", "5080")
OPENOBSERVE_USERNAME = environ.get("OPENOBSERVE_USERNAME", "admin@transport-portal.de")
OPENOBSERVE_PASSWORD = environ.get("OPENOBSERVE_PASSWORD", "password")
OPENOBSERVE_ORG = environ.get("OPENOBSERVE_ORG", "default")
OPENOBSERVE_STREAM = environ.get("OPENOBSERVE_STREAM", "transport-portal")
OPENOBSERVE_TIMEOUT = 5  # Event shipping timeout (in seconds)


# ---------------------------------------------------------------------------
# Resource upper limits
# ---------------------------------------------------------------------------
MAX_USER_TOKENS = 5  # Maximum tokens per user
MAX_TOKEN_VALIDITY = 7 * 24 * 60 * 60  # Token validity (in seconds, 7 days)
MAX_HANDOVER_PHOTOS = 20  # Photos attached to a single handover


# ---------------------------------------------------------------------------
# Regex constants (input validation)
# ---------------------------------------------------------------------------
REGEX_TIME_WINDOW = r"^([01][0-9]|2[0-3]):[0-5][0-9]$"  # HH:MM, 24h clock


# ---------------------------------------------------------------------------
# Money
# ---------------------------------------------------------------------------
MONEY_QUANTUM = Decimal("0.01")  # Two fractional digits
MAX_MONEY_DIGITS = 10  # Matches Numeric(10, 2)
CANCELLATION_FEE_RATE = Decimal("0.10")  # Fee charged on driver cancellation of auction orders


# ---------------------------------------------------------------------------
# Order approval constraints
# ---------------------------------------------------------------------------
APPROVAL_VALIDITY = 24 * 60 * 60  # Default proposal lifetime (in seconds)
