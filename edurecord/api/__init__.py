"""
API module for the REST interface and its access control.
"""

from .access_control import RoleAccessControl, parse_role
from .rest_api import EduRecordRestAPI

__all__ = [
    "EduRecordRestAPI",
    "RoleAccessControl",
    "parse_role",
]
