import socket
import logging

from errors import ResolutionError, UnreachableError

logger = logging.getLogger(__name__)


def resolve_host(hostname: str, port: int = 22) -> str:
    """Resolve a host name to its first address. Raises ResolutionError."""
    try:
        infos = socket.getaddrinfo(hostname, port, type=socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError) as e:
        raise ResolutionError(f"Could not resolve host '{hostname}': {e}", host=hostname) from e
    if not infos:
        raise ResolutionError(f"Could not resolve host '{hostname}': no addresses", host=hostname)
    address = infos[0][4][0]
    logger.debug(f"Resolved {hostname} to {address}")
    return address


def probe_reachable(address: str, port: int = 22, timeout: float = 5, hostname: str = None):
    """Open and drop a TCP connection to the SSH port. Raises UnreachableError."""
    name = hostname or address
    try:
        with socket.create_connection((address, port), timeout=timeout):
            pass
    except OSError as e:
        raise UnreachableError(
            f"Host '{name}' ({address}:{port}) is not reachable: {e}", host=name
        ) from e
    logger.debug(f"{name} answered on {address}:{port}")
