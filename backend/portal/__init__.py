"""Application package for the Student Manager and Blog Platform API.

This package exposes the service, repository and model modules used by
the FastAPI application in `portal.main`, plus `portal.client`, a small
Python client that keeps the caller's session token. Individual modules
contain the concrete implementations and documentation.
"""
