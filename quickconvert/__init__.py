"""
quickconvert: a small web service that converts uploaded documents and images.

Office conversions run through a locally installed LibreOffice, PDF assembly
and text recognition run in-process.
"""

__version__ = "1.0.0"
