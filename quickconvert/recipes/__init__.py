"""
Conversion recipes, one per conversion kind.
"""

from .dispatcher import ConversionDispatcher

__all__ = ['ConversionDispatcher']
