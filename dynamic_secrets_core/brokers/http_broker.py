"""
HTTP session broker for the MongoDB Atlas Admin API.
"""

from contextlib import ExitStack
from typing import Tuple

import requests
from requests.auth import HTTPDigestAuth

from ..constants import MONGO_ATLAS_ACCEPT_HEADER
from ..enums import ProviderType
from ..schemas.provider_schemas import MongoAtlasInputs
from .base import ConnectionBroker


class MongoAtlasSessionBroker(ConnectionBroker):
    """Opens a requests session using HTTP digest auth with the project API key pair."""

    provider_type = ProviderType.MONGO_ATLAS

    @property
    def timeouts(self) -> Tuple[float, float]:
        """(connect, read) tuple for requests."""
        return (self.connect_timeout, self.request_timeout)

    def _open(self, inputs: MongoAtlasInputs, stack: ExitStack) -> requests.Session:
        session = requests.Session()
        session.auth = HTTPDigestAuth(inputs.admin_public_key, inputs.admin_private_key)
        session.headers.update(
            {"Accept": MONGO_ATLAS_ACCEPT_HEADER, "Content-Type": "application/json"}
        )
        stack.callback(self._close_quietly, session.close, "atlas session")
        return session

    def is_connection_error(self, error: Exception) -> bool:
        return isinstance(
            error, (requests.ConnectionError, requests.Timeout)
        ) or super().is_connection_error(error)
