"""Trust-boundary validators for caller-supplied tool arguments."""

from .error_sanitizer import get_safe_error_message, is_production, sanitize_error, sanitize_stack
from .header_validator import (
    BLOCKED_HEADERS,
    validate_header_name,
    validate_header_value,
    validate_headers,
)
from .input_validator import (
    validate_fill_value,
    validate_selector,
    validate_text_input,
    validate_timeout,
    validate_url_pattern,
    validate_wait_url_pattern,
)
from .path_validator import validate_directory_path, validate_path
from .url_validator import (
    ValidatedURL,
    host_matches,
    is_private_host,
    validate_navigation_url,
    validate_url,
)

__all__ = [
    "BLOCKED_HEADERS",
    "ValidatedURL",
    "get_safe_error_message",
    "host_matches",
    "is_private_host",
    "is_production",
    "sanitize_error",
    "sanitize_stack",
    "validate_directory_path",
    "validate_fill_value",
    "validate_header_name",
    "validate_header_value",
    "validate_headers",
    "validate_navigation_url",
    "validate_path",
    "validate_selector",
    "validate_text_input",
    "validate_timeout",
    "validate_url",
    "validate_url_pattern",
    "validate_wait_url_pattern",
]
