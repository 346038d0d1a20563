"""
Web application module.
FastAPI-based JSON API for treenode.
"""

from .app import app, get_engine, get_store

__all__ = ['app', 'get_engine', 'get_store']
