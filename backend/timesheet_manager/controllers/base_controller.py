"""
Base controller class.
Controllers are built per request around the request's session and turn
service results into response schemas.
"""

from abc import ABC


class BaseController(ABC):
    """Marker base for request-scoped controllers."""
    pass
