"""Blogsphere: social blogging over FastAPI and MongoDB."""

__version__ = "0.1.0"
