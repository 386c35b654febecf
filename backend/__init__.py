"""
Backend package for the founders admin API.

This package provides a FastAPI application that manages founder profile
records and their uploaded photos, with record and image storage kept behind
small interfaces so tests can swap in in-memory implementations.
"""
