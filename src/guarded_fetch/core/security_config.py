"""Security configuration constants for the guarded-fetch API.

This module centralizes:
- Keys that should be redacted from logs
- Error response fields allowed per environment
"""

# Keys redacted from structured log entries. Fetch requests never carry
# credentials, but forwarded headers and query strings can.
SENSITIVE_KEYS: set[str] = {
    "password",
    "secret",
    "token",
    "access_token",
    "refresh_token",
    "authorization",
    "api_key",
    "apikey",
    "bearer",
    "session_id",
    "cookie",
    "set-cookie",
    "x-api-key",
    "x-auth-token",
}

# Production-only error response fields
PRODUCTION_ERROR_FIELDS: set[str] = {
    "correlation_id",
    "type",
}

# Development error response fields (additional fields allowed in development)
DEVELOPMENT_ERROR_FIELDS: set[str] = PRODUCTION_ERROR_FIELDS | {
    "details",
    "traceback",
    "exception_type",
    "validation_errors",
}


def get_allowed_error_fields(environment: str) -> set[str]:
    """Get allowed error response fields based on environment.

    Args:
        environment: The application environment (production, development, etc.)

    Returns:
        Set of allowed field names for error responses
    """
    if environment == "production":
        return PRODUCTION_ERROR_FIELDS.copy()
    return DEVELOPMENT_ERROR_FIELDS.copy()


def is_sensitive_key(key: str) -> bool:
    """Check if a key should be considered sensitive and redacted."""
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in SENSITIVE_KEYS)
