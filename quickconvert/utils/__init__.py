"""
Shared building blocks: logging, errors, temp storage, external tools.
"""
