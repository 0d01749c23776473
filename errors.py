class ProvisioningError(Exception):
    """Base class for every failure reported while provisioning a remote capability."""

    def __init__(self, message: str, host: str = None):
        super().__init__(message)
        self.host = host


class ResolutionError(ProvisioningError):
    """Host name could not be resolved to an address."""


class UnreachableError(ProvisioningError):
    """Host resolved but did not answer the liveness probe."""


class SessionConnectionError(ProvisioningError):
    """Transport-level failure while opening the SSH session."""


class RemoteExecutionError(ProvisioningError):
    """A command run on the remote host exited non-zero."""

    def __init__(self, message: str, host: str = None, exit_status: int = None, stderr: str = ""):
        super().__init__(message, host)
        self.exit_status = exit_status
        self.stderr = stderr


class RemoteLoadError(ProvisioningError):
    """The requested library is missing or failed to load on the remote side."""

    def __init__(self, message: str, host: str = None, library: str = None, stderr: str = ""):
        super().__init__(message, host)
        self.library = library
        self.stderr = stderr


class CommandImportError(ProvisioningError):
    """Remote commands could not be exposed in the local namespace."""

    def __init__(self, message: str, host: str = None, library: str = None, missing=()):
        super().__init__(message, host)
        self.library = library
        self.missing = tuple(missing)
