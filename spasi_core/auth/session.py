"""
Signed-in user lookup for the SPASI core.

The login screens live outside this package and store the user record in
``st.session_state["user"]`` after a successful sign-in. The core only needs
the user id, to stamp ownership on case records.
"""

import streamlit as st
from typing import Optional, Dict, Any

USER_KEY = "user"


def check_authentication() -> bool:
    """
    Check if a user is signed in.

    Returns:
        bool: True if a user record is present in the session
    """
    return bool(st.session_state.get("authenticated", False) and st.session_state.get(USER_KEY))


def get_current_user() -> Optional[Dict[str, Any]]:
    """
    Get the signed-in user.

    Returns:
        Optional[Dict[str, Any]]: User dict (``id``, ``email``, ``name``) or None
    """
    if not check_authentication():
        return None

    return dict(st.session_state[USER_KEY])


def get_current_user_id() -> Optional[str]:
    user = get_current_user()
    return str(user["id"]) if user and user.get("id") else None


def set_current_user(user: Dict[str, Any]) -> None:
    """
    Record a signed-in user (called by the login page).

    Args:
        user: Must contain at least ``id``
    """
    if not user.get("id"):
        raise ValueError("User record must contain an id")

    st.session_state[USER_KEY] = dict(user)
    st.session_state["authenticated"] = True


def logout_user():
    """
    Sign out the current user and clear session state.
    """
    for key in (USER_KEY, "authenticated"):
        if key in st.session_state:
            del st.session_state[key]
