"""Shared utilities for the dispatch backend."""

from dispatch.utils.auth import (
    token_required,
    admin_required,
    generate_token,
    decode_token,
)

__all__ = [
    'token_required',
    'admin_required',
    'generate_token',
    'decode_token',
]
