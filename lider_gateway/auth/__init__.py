"""
Authentication module.
Contains credential verification backends.
"""

from lider_gateway.auth.backends import AuthenticationBackend, LdapAuthBackend

__all__ = ["AuthenticationBackend", "LdapAuthBackend"]
