"""Input validators."""

from berth.validators.environment import (
    MAX_VOLUMES,
    PROHIBITED_CHARS,
    contains_prohibited_chars,
    parse_volume_requests,
)

__all__ = [
    "MAX_VOLUMES",
    "PROHIBITED_CHARS",
    "contains_prohibited_chars",
    "parse_volume_requests",
]
