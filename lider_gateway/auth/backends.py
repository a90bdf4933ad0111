"""
Credential verification backends.
"""

import asyncio
import logging
from typing import Protocol

from ldap3 import SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars

from lider_gateway.config import Settings
from lider_gateway.exceptions import RemoteOperationError

logger = logging.getLogger(__name__)


class AuthenticationBackend(Protocol):
    """Verifies a username/password pair."""

    async def basic_auth(self, username: str, password: str) -> bool:
        ...


class LdapAuthBackend:
    """
    LDAP credential verification.

    Binds with the service account, looks the user up by
    ``(<username_attribute>=<username>)`` under the search base, then binds
    as the found entry with the supplied password. ldap3 is blocking, so each
    check runs in a worker thread.
    """

    def __init__(
        self,
        url: str,
        bind_dn: str | None,
        bind_password: str | None,
        search_base: str,
        username_attribute: str = "uid",
        timeout: int = 15,
    ):
        self.url = url
        self.bind_dn = bind_dn
        self.bind_password = bind_password
        self.search_base = search_base
        self.username_attribute = username_attribute
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "LdapAuthBackend":
        """
        Build the backend from environment settings and the optional config file.

        Raises:
            ValueError: If LDAP_URL or LDAP_SEARCH_BASE is missing.
        """
        options = settings.ldap_options()
        if "ldap_url" not in options:
            raise ValueError("LDAP_URL is not provided in the configuration")
        if "ldap_search_base" not in options:
            raise ValueError("LDAP_SEARCH_BASE is not provided in the configuration")

        return cls(
            url=options["ldap_url"],
            bind_dn=options.get("ldap_bind_dn"),
            bind_password=options.get("ldap_bind_password"),
            search_base=options["ldap_search_base"],
            username_attribute=options.get("ldap_username_attribute", "uid"),
            timeout=settings.ldap_timeout_seconds,
        )

    def _server(self) -> Server:
        return Server(self.url, connect_timeout=self.timeout)

    def _find_user_dn(self, username: str) -> str | None:
        search_filter = f"({self.username_attribute}={escape_filter_chars(username)})"
        logger.debug("Searching LDAP user", extra={"filter": search_filter})

        with Connection(
            self._server(),
            user=self.bind_dn,
            password=self.bind_password,
            receive_timeout=self.timeout,
            auto_bind=True,
        ) as conn:
            conn.search(self.search_base, search_filter, search_scope=SUBTREE, attributes=[])
            if not conn.entries:
                return None
            return conn.entries[0].entry_dn

    def _authenticate(self, username: str, password: str) -> bool:
        try:
            user_dn = self._find_user_dn(username)
            if user_dn is None:
                return False

            conn = Connection(
                self._server(),
                user=user_dn,
                password=password,
                receive_timeout=self.timeout,
            )
            try:
                return bool(conn.bind())
            finally:
                conn.unbind()

        except LDAPException as e:
            logger.error("LDAP error", extra={"error": str(e)})
            raise RemoteOperationError(f"LDAP error: {e}", target="LDAP") from e

    async def basic_auth(self, username: str, password: str) -> bool:
        """
        Check a username/password pair against the directory.

        Returns:
            True if the directory accepts the credentials.

        Raises:
            RemoteOperationError: If the directory cannot be reached.
        """
        # An empty password would be an anonymous bind
        if not username or not password:
            return False

        is_valid = await asyncio.to_thread(self._authenticate, username, password)
        logger.info(
            "LDAP authentication finished",
            extra={"username": username, "authenticated": is_valid},
        )
        return is_valid
