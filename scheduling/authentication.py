"""
Token authentication for the scheduling API.

Kept in its own module so the REST framework can import it from settings
without pulling in any view code.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """Token authentication using the ``Token`` keyword.

    Subclassed to give settings a stable import path.
    """

    keyword = 'Token'
