import logging

from errors import CommandImportError

logger = logging.getLogger(__name__)


class RemoteCommand:
    """Local callable that runs one exported library function on the remote host."""

    def __init__(self, connection, library: str, name: str):
        self.connection = connection
        self.library = library
        self.name = name

    @property
    def host(self) -> str:
        return self.connection.hostname

    def __call__(self, *args, timeout: float = None) -> str:
        return self.connection.run_library_command(self.library, self.name, *args, timeout=timeout)

    def __repr__(self):
        return f"<RemoteCommand {self.library}:{self.name} on {self.host}>"


class CommandNamespace:
    """
    Explicit registry of remote commands exposed as local callables.

    Lookup works by item (``ns["Get-Thing"]``) or by attribute, where
    underscores stand in for dashes (``ns.Get_Thing``).
    """

    def __init__(self):
        self._commands = {}

    def import_commands(self, connection, library: str, names=None) -> list:
        """
        Bind proxies for a loaded library's commands, optionally only the named subset.

        Same-named entries are overwritten. Nothing is bound if any requested
        name is not exported by the library.
        """
        capability = connection.capabilities.get(library)
        if capability is None:
            raise CommandImportError(
                f"Library '{library}' is not loaded on {connection.hostname}",
                host=connection.hostname,
                library=library,
            )

        names = list(names or ())
        missing = [n for n in names if not capability.exports(n)]
        if missing:
            raise CommandImportError(
                f"Library '{library}' on {connection.hostname} does not export: {', '.join(missing)}",
                host=connection.hostname,
                library=library,
                missing=missing,
            )

        selected = names or list(capability.commands)
        for name in selected:
            previous = self._commands.get(name)
            if previous is not None:
                logger.debug(f"Overwriting {previous!r}")
            self._commands[name] = RemoteCommand(connection, library, name)
        logger.debug(f"Imported {len(selected)} command(s) from '{library}' on {connection.hostname}")
        return selected

    def forget(self, connection) -> int:
        """Drop every proxy bound to connection. Returns how many were removed."""
        stale = [n for n, cmd in self._commands.items() if cmd.connection is connection]
        for name in stale:
            del self._commands[name]
        return len(stale)

    def names(self) -> list:
        return list(self._commands)

    def get(self, name: str, default=None):
        return self._commands.get(name, default)

    def __getitem__(self, name: str) -> RemoteCommand:
        return self._commands[name]

    def __getattr__(self, attr: str) -> RemoteCommand:
        if attr.startswith("_"):
            raise AttributeError(attr)
        commands = self.__dict__.get("_commands", {})
        for candidate in (attr, attr.replace("_", "-")):
            if candidate in commands:
                return commands[candidate]
        raise AttributeError(f"No remote command named {attr!r}")

    def __contains__(self, name):
        return name in self._commands

    def __iter__(self):
        return iter(self._commands)

    def __len__(self):
        return len(self._commands)
