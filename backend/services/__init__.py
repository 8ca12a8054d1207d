"""Services package initialization."""

from .api_helpers import api_error, api_success, get_store, parse_json_body, require_user

__all__ = [
    "api_error",
    "api_success",
    "get_store",
    "parse_json_body",
    "require_user",
]
