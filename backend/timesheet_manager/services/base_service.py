"""
Base service class.
Services own one workflow step each: they check access, move state through
repositories, record audit and commit the request's session.
"""

from abc import ABC


class BaseService(ABC):
    """Marker base for workflow and support services."""
    pass
