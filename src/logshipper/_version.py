"""
Fallback version module.

Kept separate so packaging tools can rewrite it without touching
``logshipper/__init__.py``.
"""

__version__ = "0.1.0"
