import os
import enum
import shlex
import logging
from dataclasses import dataclass
from dotenv import load_dotenv
import paramiko

from errors import RemoteExecutionError, RemoteLoadError, SessionConnectionError

load_dotenv()
logger = logging.getLogger(__name__)

DEFAULT_LIB_DIR = "~/.remote_libs"
LOAD_MARKER = "__REMOTE_LIB_LOADED__"


class ConnectionState(enum.Enum):
    OPENING = "opening"
    OPEN = "open"
    BROKEN = "broken"
    CLOSED = "closed"


@dataclass(frozen=True)
class LoadedCapability:
    """A library sourced through a connection and the functions it exported."""
    library: str
    path: str
    commands: tuple

    def exports(self, name: str) -> bool:
        return name in self.commands


def remote_path_expr(path: str) -> str:
    """Quote a remote path for bash while keeping a leading ~ expandable."""
    if path == "~":
        return '"$HOME"'
    if path.startswith("~/"):
        return '"$HOME"/' + shlex.quote(path[2:])
    return shlex.quote(path)


def _function_names(lines) -> list:
    # `declare -F` prints lines like "declare -f name" or "declare -fx name"
    names = []
    for line in lines:
        parts = line.split()
        if len(parts) >= 3 and parts[0] == "declare":
            names.append(parts[-1])
    return names


class RemoteConnection:
    """
    One paramiko SSH session to a single host, plus the command libraries loaded through it.
    Configuration is loaded from environment variables or can be passed directly.
    """
    def __init__(
        self,
        hostname: str = None,
        username: str = None,
        port: int = None,
        key_filepath: str = None,
        password: str = None,
        timeout: float = None,
        lib_dir: str = None,
    ):
        # Load from env if not provided
        self.hostname = hostname or os.getenv("SSH_HOST")
        self.username = username or os.getenv("SSH_USER")
        self.port = port or int(os.getenv("SSH_PORT", 22))
        self.key_filepath = key_filepath or os.getenv("SSH_KEY_PATH")
        self.password = password or os.getenv("SSH_PASSWORD")
        self.timeout = timeout if timeout is not None else float(os.getenv("SSH_TIMEOUT", 10))
        self.lib_dir = lib_dir or os.getenv("REMOTE_LIB_DIR", DEFAULT_LIB_DIR)
        self.client = None
        self._state = ConnectionState.CLOSED
        self._capabilities = {}

    def __repr__(self):
        return f"RemoteConnection({self.hostname!r}, state={self.state.value})"

    @property
    def state(self) -> ConnectionState:
        """Lifecycle state; an open session whose transport died reports BROKEN."""
        if self._state is ConnectionState.OPEN:
            transport = self.client.get_transport() if self.client else None
            if transport is None or not transport.is_active():
                self._state = ConnectionState.BROKEN
        return self._state

    @property
    def capabilities(self) -> dict:
        return dict(self._capabilities)

    def connect(self):
        """Establish SSH connection using key or password auth."""
        self._state = ConnectionState.OPENING
        try:
            self.client = paramiko.SSHClient()
            self.client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

            connect_args = dict(
                hostname=self.hostname,
                port=self.port,
                username=self.username,
                timeout=self.timeout,
            )
            if self.key_filepath:
                connect_args["key_filename"] = self.key_filepath
            if self.password:
                connect_args["password"] = self.password

            who = f"{self.username}@" if self.username else ""
            logger.info(f"Connecting to {who}{self.hostname}:{self.port}")
            self.client.connect(**connect_args)
        except (paramiko.SSHException, OSError) as e:
            logger.error(f"SSH connection to {self.hostname} failed: {e}")
            self._state = ConnectionState.BROKEN
            self.client.close()
            raise SessionConnectionError(
                f"Could not open SSH session to {self.hostname}: {e}", host=self.hostname
            ) from e
        self._state = ConnectionState.OPEN
        logger.info(f"SSH connection to {self.hostname} established.")

    def execute_command(self, command: str, timeout: float = None) -> str:
        """
        Execute a command on the remote host and return stdout. Raises on error.
        """
        if self.state is not ConnectionState.OPEN:
            raise RuntimeError(f"SSH session to {self.hostname} is not open. Call connect() first.")
        try:
            stdin, stdout, stderr = self.client.exec_command(command, timeout=timeout)
            # drain output before the exit status so a full channel window cannot block
            out = stdout.read().decode(errors="replace")
            err = stderr.read().decode(errors="replace")
            exit_status = stdout.channel.recv_exit_status()
        except (paramiko.SSHException, OSError) as e:
            self._state = ConnectionState.BROKEN
            raise SessionConnectionError(
                f"SSH session to {self.hostname} failed while running a command: {e}",
                host=self.hostname,
            ) from e
        if exit_status != 0:
            logger.debug(f"Command on {self.hostname} failed ({exit_status}): {err.strip()}")
            raise RemoteExecutionError(
                f"Remote command failed ({exit_status}): {err.strip()}",
                host=self.hostname,
                exit_status=exit_status,
                stderr=err,
            )
        return out

    def library_path(self, library: str) -> str:
        if "/" in library:
            return library
        return f"{self.lib_dir.rstrip('/')}/{library}.sh"

    def load_library(self, library: str) -> LoadedCapability:
        """
        Source the library script in a remote bash and record the functions it defines.

        Functions present before sourcing, and names starting with an underscore,
        are not exported.
        """
        path = self.library_path(library)
        script = (
            f"declare -F; echo {LOAD_MARKER}; "
            f". {remote_path_expr(path)} || exit 3; "
            f"echo {LOAD_MARKER}; declare -F"
        )
        logger.info(f"Loading library '{library}' from {path} on {self.hostname}")
        try:
            out = self.execute_command(f"bash -c {shlex.quote(script)}")
        except RemoteExecutionError as e:
            raise RemoteLoadError(
                f"Library '{library}' failed to load on {self.hostname}: {e.stderr.strip() or e}",
                host=self.hostname,
                library=library,
                stderr=e.stderr,
            ) from e

        lines = [ln.strip() for ln in out.splitlines()]
        if lines.count(LOAD_MARKER) < 2:
            raise RemoteLoadError(
                f"Library '{library}' produced no load confirmation on {self.hostname}",
                host=self.hostname,
                library=library,
            )
        first = lines.index(LOAD_MARKER)
        second = lines.index(LOAD_MARKER, first + 1)
        before = set(_function_names(lines[:first]))
        commands = tuple(
            name for name in _function_names(lines[second + 1:])
            if name not in before and not name.startswith("_")
        )

        capability = LoadedCapability(library=library, path=path, commands=commands)
        self._capabilities[library] = capability
        logger.info(f"Library '{library}' loaded on {self.hostname}: {len(commands)} command(s)")
        return capability

    def has_library(self, library: str) -> bool:
        return library in self._capabilities

    def has_command(self, library: str, name: str) -> bool:
        capability = self._capabilities.get(library)
        return capability is not None and capability.exports(name)

    def run_library_command(self, library: str, name: str, *args, timeout: float = None) -> str:
        """Run one exported function of a loaded library and return its stdout."""
        capability = self._capabilities.get(library)
        if capability is None:
            raise RuntimeError(f"Library '{library}' is not loaded on {self.hostname}.")
        script = f'. {remote_path_expr(capability.path)} && {shlex.quote(name)} "$@"'
        argv = " ".join(shlex.quote(str(a)) for a in args)
        command = f"bash -c {shlex.quote(script)} {shlex.quote(name)} {argv}".rstrip()
        return self.execute_command(command, timeout=timeout)

    def close(self):
        """Close the SSH session and forget loaded libraries."""
        if self.client:
            self.client.close()
        self._capabilities.clear()
        self._state = ConnectionState.CLOSED
        logger.info(f"SSH connection to {self.hostname} closed.")
