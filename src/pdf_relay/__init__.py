"""
PDF Relay package.

This module provides a FastAPI application that converts HTML to PDF through
Adobe PDF Services. The conversion endpoint is available at
`/api/generate-pdf`.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
