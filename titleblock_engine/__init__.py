"""Title block text extraction for engineering drawing folders.

This package focuses on:
- converting CAD drawings and scanned TIFFs in a folder to PDF
- scraping the text tokens inside a corner region of every PDF page
- result.json / metrics.json / errors.jsonl job reports

CAD rendering and image decoding are delegated to the CAD application and Pillow.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
