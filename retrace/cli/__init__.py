# retrace/cli/__init__.py
"""
CLI components for retrace.
"""
from .main import app

__all__ = ['app']
