"""Application package for the adaptive quiz backend.

This package exposes the scoring core (`scoring`, `selection`) together
with the service, repository and model modules used by the FastAPI
application. Individual modules contain the concrete implementations
and documentation.
"""
