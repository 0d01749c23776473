"""
Shared pytest fixtures for the provisioner tests.

FakeConnection stands in for a paramiko-backed RemoteConnection; the
ConnectionFactory and Network fakes record every call so tests can count
opens, closes and short-circuits.
"""

import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from errors import RemoteLoadError, ResolutionError, SessionConnectionError, UnreachableError
from provisioner import SessionProvisioner
from remote import ConnectionState, LoadedCapability


class FakeConnection:
    """In-memory connection: `libraries` maps library name to the commands it exports."""

    def __init__(self, hostname, libraries=None, fail_connect=False, **options):
        self.hostname = hostname
        self.options = options
        self.libraries = dict(libraries or {})
        self.fail_connect = fail_connect
        self._state = ConnectionState.CLOSED
        self._capabilities = {}
        self.close_count = 0
        self.calls = []

    @property
    def state(self):
        return self._state

    @property
    def capabilities(self):
        return dict(self._capabilities)

    def connect(self):
        if self.fail_connect:
            self._state = ConnectionState.BROKEN
            raise SessionConnectionError(f"refused by {self.hostname}", host=self.hostname)
        self._state = ConnectionState.OPEN

    def load_library(self, library):
        if library not in self.libraries:
            raise RemoteLoadError(f"no library {library}", host=self.hostname, library=library)
        capability = LoadedCapability(
            library=library,
            path=f"~/.remote_libs/{library}.sh",
            commands=tuple(self.libraries[library]),
        )
        self._capabilities[library] = capability
        return capability

    def has_library(self, library):
        return library in self._capabilities

    def has_command(self, library, name):
        capability = self._capabilities.get(library)
        return capability is not None and capability.exports(name)

    def run_library_command(self, library, name, *args, timeout=None):
        self.calls.append((library, name, args))
        return f"{name} {' '.join(args)}".strip()

    def close(self):
        self.close_count += 1
        self._capabilities.clear()
        self._state = ConnectionState.CLOSED


def open_connection(hostname, library, commands):
    """A FakeConnection that is already open with `library` loaded."""
    connection = FakeConnection(hostname, libraries={library: commands})
    connection.connect()
    connection.load_library(library)
    return connection


class ConnectionFactory:
    def __init__(self, libraries=None, fail_connect=False):
        self.libraries = libraries or {}
        self.fail_connect = fail_connect
        self.created = []

    def __call__(self, hostname, **options):
        connection = FakeConnection(
            hostname, libraries=self.libraries, fail_connect=self.fail_connect, **options
        )
        self.created.append(connection)
        return connection


class Network:
    """Resolver and prober pair with configurable failures."""

    def __init__(self):
        self.unresolvable = set()
        self.unreachable = set()
        self.resolved = []
        self.probed = []

    def resolve(self, host, port):
        self.resolved.append((host, port))
        if host in self.unresolvable:
            raise ResolutionError(f"Could not resolve host '{host}'", host=host)
        return "10.0.0.1"

    def probe(self, address, port, timeout, hostname):
        self.probed.append((address, port, hostname))
        if hostname in self.unreachable:
            raise UnreachableError(f"Host '{hostname}' is not reachable", host=hostname)


@pytest.fixture
def network():
    return Network()


@pytest.fixture
def factory():
    return ConnectionFactory(libraries={"Lib": ["Get-Thing", "Set-Thing", "Remove-Thing"]})


@pytest.fixture
def provisioner(factory, network):
    return SessionProvisioner(
        connection_factory=factory,
        resolver=network.resolve,
        prober=network.probe,
        probe_timeout=1,
        port=22,
    )
