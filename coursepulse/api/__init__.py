"""
API module for the REST API implementation.
"""

from .rest_api import CoursePulseRestAPI

__all__ = [
    "CoursePulseRestAPI",
]
