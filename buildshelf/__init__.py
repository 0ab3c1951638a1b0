"""
BuildShelf — hosts static build artifacts per project, on any backend.
"""

__version__ = "0.1.0"
