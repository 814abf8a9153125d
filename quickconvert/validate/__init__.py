"""
File validation module for uploads.

This module checks uploads against the allow-list of the requested conversion
kind before any conversion work starts.
"""

from .file_type_validator import FileTypeValidator, ValidationError, matches_allow_list

# Global validator instance
_validator = None


def get_validator() -> FileTypeValidator:
    """Get the shared validator built from the default rules."""
    global _validator
    if _validator is None:
        _validator = FileTypeValidator()
    return _validator


__all__ = ['FileTypeValidator', 'ValidationError', 'matches_allow_list', 'get_validator']
