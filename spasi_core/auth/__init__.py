"""
Authentication collaborator for SPASI.
Exposes the signed-in user recorded by the login pages; credential checks
and the auth wire format belong to those pages.
"""

from .session import (
    check_authentication,
    get_current_user,
    get_current_user_id,
    set_current_user,
    logout_user,
)

__all__ = [
    "check_authentication",
    "get_current_user",
    "get_current_user_id",
    "set_current_user",
    "logout_user",
]
