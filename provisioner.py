import os
import logging
from dataclasses import dataclass

from commands import CommandNamespace
from netcheck import probe_reachable, resolve_host
from remote import ConnectionState, RemoteConnection
from session_pool import ConnectionPool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapabilityRequirement:
    """What one call needs: a library on a host, optionally only some of its commands."""
    host: str
    library: str
    commands: tuple = ()
    force: bool = False

    @classmethod
    def build(cls, host: str, library: str, commands=None, force: bool = False) -> "CapabilityRequirement":
        if not isinstance(host, str) or not host.strip():
            raise ValueError("host name must be a non-empty string")
        if not isinstance(library, str) or not library.strip():
            raise ValueError("library name must be a non-empty string")
        if isinstance(commands, str):
            commands = [commands]
        ordered = []
        for name in commands or ():
            if not isinstance(name, str) or not name.strip():
                raise ValueError(f"invalid command name: {name!r}")
            name = name.strip()
            if name not in ordered:
                ordered.append(name)
        return cls(host.strip(), library.strip(), tuple(ordered), bool(force))


class SessionProvisioner:
    """
    Makes sure a host has an open SSH session with a command library loaded,
    reusing a pooled session whenever it already satisfies the request.

    Extra keyword arguments (username, port, key_filepath, password, timeout,
    lib_dir) are passed to every new connection.
    """
    def __init__(
        self,
        pool: ConnectionPool = None,
        namespace: CommandNamespace = None,
        connection_factory=None,
        resolver=None,
        prober=None,
        probe_timeout: float = None,
        **connection_options,
    ):
        self.pool = pool if pool is not None else ConnectionPool()
        self.namespace = namespace if namespace is not None else CommandNamespace()
        self.connection_factory = connection_factory or RemoteConnection
        self.resolver = resolver or resolve_host
        self.prober = prober or probe_reachable
        self.probe_timeout = (
            probe_timeout if probe_timeout is not None else float(os.getenv("PROBE_TIMEOUT", 5))
        )
        self.connection_options = {k: v for k, v in connection_options.items() if v is not None}
        self.port = self.connection_options.get("port") or int(os.getenv("SSH_PORT", 22))

    def ensure_remote_capability(self, host: str, library: str, commands=None, force: bool = False) -> CommandNamespace:
        """
        Return the command namespace once `library` (or the named `commands` of it)
        is usable on `host`.

        An existing pooled session is reused only if it is open, has the library
        loaded and exports every requested command; a single missing command
        invalidates the whole session. `force` always rebuilds. Provisioning
        failures raise a ProvisioningError subclass and are never retried.
        """
        requirement = CapabilityRequirement.build(host, library, commands, force)
        connection = self.pool.get(requirement.host)

        if connection is not None:
            reason = self._reuse_blocker(connection, requirement)
            if reason is None:
                logger.debug(f"Reusing session to {requirement.host} for '{requirement.library}'")
                # rebind locally; the namespace may hold a subset or another host's proxies
                self.namespace.import_commands(connection, requirement.library, requirement.commands)
                return self.namespace
            self._discard(requirement.host, connection, reason, forced=requirement.force)

        return self._provision(requirement)

    def _reuse_blocker(self, connection, requirement: CapabilityRequirement):
        """Why the pooled connection cannot serve the requirement, or None if it can."""
        state = connection.state
        if state is not ConnectionState.OPEN:
            return f"session is {state.value}"
        if not connection.has_library(requirement.library):
            return f"library '{requirement.library}' is not loaded"
        for name in requirement.commands:
            if not connection.has_command(requirement.library, name):
                return f"command '{name}' is not available"
        if requirement.force:
            return "re-creation forced"
        return None

    def _discard(self, host: str, connection, reason: str, forced: bool = False):
        if forced:
            logger.info(f"Discarding session to {host}: {reason}")
        else:
            logger.warning(f"Discarding session to {host}: {reason}")
        self.namespace.forget(connection)
        self.pool.discard(host)

    def _provision(self, requirement: CapabilityRequirement) -> CommandNamespace:
        host = requirement.host
        address = self.resolver(host, self.port)
        self.prober(address, self.port, self.probe_timeout, host)

        connection = self.connection_factory(hostname=host, **self.connection_options)
        connection.connect()
        self.pool.add(host, connection)

        connection.load_library(requirement.library)
        # an import failure leaves the session pooled and open
        self.namespace.import_commands(connection, requirement.library, requirement.commands)
        logger.debug(f"Session to {host} ready with '{requirement.library}'")
        return self.namespace

    def close(self):
        for host in self.pool.hosts():
            connection = self.pool.get(host)
            if connection is not None:
                self.namespace.forget(connection)
        self.pool.close_all()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
