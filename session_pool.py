import logging

logger = logging.getLogger(__name__)


class ConnectionPool:
    """
    Caller-owned registry of open remote connections, keyed by host name.

    Host names are compared case-insensitively. The pool has no locking: it
    assumes one caller per host at a time.
    """
    def __init__(self):
        self._connections = {}

    @staticmethod
    def _key(host: str) -> str:
        return host.strip().lower()

    def get(self, host: str):
        """Return the pooled connection for host, or None."""
        return self._connections.get(self._key(host))

    def add(self, host: str, connection):
        """Register connection for host, closing any connection it replaces."""
        key = self._key(host)
        previous = self._connections.get(key)
        if previous is not None and previous is not connection:
            self._close(key, previous)
        self._connections[key] = connection

    def discard(self, host: str):
        """Close and forget the connection for host. Returns the discarded connection or None."""
        connection = self._connections.pop(self._key(host), None)
        if connection is not None:
            self._close(host, connection)
        return connection

    def close_all(self):
        for key in list(self._connections):
            self.discard(key)

    def _close(self, host, connection):
        try:
            connection.close()
        except Exception as e:
            # teardown of an already broken session
            logger.warning(f"Error while closing connection to {host}: {e}")

    def hosts(self) -> list:
        return list(self._connections)

    def __contains__(self, host):
        return self._key(host) in self._connections

    def __len__(self):
        return len(self._connections)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close_all()
        return False
