"""Localhost REST API for driving the recorder host."""

from .controller import APIController
from .server import APIServer

__all__ = ["APIController", "APIServer"]
