"""
Base connection broker.

A broker opens a short-lived, provider-specific client for one operation and
guarantees teardown on every exit path. Failures to connect, and network or
authentication failures while the client is in use, surface as
ConnectionFailedError; everything else propagates unchanged so the driver can
decide what it means.
"""

import os
import tempfile
from abc import ABC, abstractmethod
from contextlib import ExitStack, contextmanager
from typing import Any, Callable, Iterator, Optional, TypeVar

from ..config import ConnectionConfig, get_config
from ..enums import ProviderType
from ..exceptions import BaseError, ConnectionFailedError
from ..utils.logger import get_logger

T = TypeVar("T")


@contextmanager
def ca_file(ca: Optional[str]) -> Iterator[Optional[str]]:
    """
    Write PEM CA material to a private temporary file for libraries that only take paths.

    Yields None when no CA is configured. The file is removed on exit.
    """
    if not ca:
        yield None
        return

    fd, path = tempfile.mkstemp(prefix="dynamic-secret-ca-", suffix=".pem")
    try:
        with os.fdopen(fd, "w") as handle:
            handle.write(ca)
        yield path
    finally:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass


class ConnectionBroker(ABC):
    """
    Scoped acquisition of a client for one external system.

    Subclasses implement `_open`, registering any teardown on the supplied
    ExitStack, and `is_connection_error` to classify failures raised while the
    client is in use.
    """

    provider_type: ProviderType

    def __init__(self, connection_config: Optional[ConnectionConfig] = None):
        self._connection_config = connection_config
        self.logger = get_logger()

    @property
    def connection_config(self) -> ConnectionConfig:
        return self._connection_config or get_config().connection

    @property
    def connect_timeout(self) -> float:
        return self.connection_config.timeout_for(self.provider_type)

    @property
    def request_timeout(self) -> float:
        return self.connection_config.request_timeout

    @abstractmethod
    def _open(self, inputs: Any, stack: ExitStack) -> Any:
        """Open and return a client, registering teardown callbacks on `stack`."""

    def is_connection_error(self, error: Exception) -> bool:
        """Whether an exception raised while using the client means the system is unreachable."""
        return isinstance(error, (ConnectionError, TimeoutError))

    def _connection_failed(self, error: Exception, stage: str) -> ConnectionFailedError:
        return ConnectionFailedError(
            f"Failed to {stage} {self.provider_type.value}: {error}",
            provider_type=self.provider_type.value,
            cause=error,
            stage=stage,
        )

    def _close_quietly(self, close: Callable[[], Any], what: str) -> None:
        try:
            close()
        except Exception as e:
            self.logger.warning(
                f"Failed to close {what}",
                extra={"provider_type": self.provider_type.value, "error": str(e)},
            )

    @contextmanager
    def connection(self, inputs: Any) -> Iterator[Any]:
        """Open a client for `inputs` and tear it down when the block exits."""
        with ExitStack() as stack:
            try:
                client = self._open(inputs, stack)
            except BaseError:
                raise
            except Exception as e:
                raise self._connection_failed(e, "connect to") from e

            try:
                yield client
            except BaseError:
                raise
            except Exception as e:
                if self.is_connection_error(e):
                    raise self._connection_failed(e, "communicate with") from e
                raise

    def with_connection(self, inputs: Any, fn: Callable[[Any], T]) -> T:
        """Run `fn` with an open client and return its result."""
        with self.connection(inputs) as client:
            return fn(client)
