#!/usr/bin/env python3
"""
ensure_capability.py

Make sure a remote host has an open SSH session with a shell command library loaded.
A library is a script at $REMOTE_LIB_DIR/<library>.sh on the remote host (or an
explicit path); every shell function it defines becomes a command.

Connection settings come from the environment (or a .env file):
  SSH_USER, SSH_PORT, SSH_KEY_PATH, SSH_PASSWORD, SSH_TIMEOUT, REMOTE_LIB_DIR, PROBE_TIMEOUT

Usage:
  python ensure_capability.py build01 deploy-tools --command Get-Thing --list
"""
import sys
import argparse
import logging

from errors import ProvisioningError
from provisioner import SessionProvisioner

# Setup logging
def get_logger(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="[%(asctime)s] %(levelname)s: %(message)s",
    )
    return logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Ensure a remote command library is available over an SSH session."
    )
    parser.add_argument("host", help="Target host name")
    parser.add_argument("library", help="Library name, or a path to the library script")
    parser.add_argument("-c", "--command", dest="commands", action="append", default=None,
                        help="Import only this command (repeatable, order kept)")
    parser.add_argument("-f", "--force", action="store_true",
                        help="Discard any existing session and rebuild it")
    parser.add_argument("-u", "--user", default=None, help="SSH user (default: $SSH_USER)")
    parser.add_argument("-p", "--port", type=int, default=None, help="SSH port (default: $SSH_PORT or 22)")
    parser.add_argument("-k", "--key", default=None, help="Private key file (default: $SSH_KEY_PATH)")
    parser.add_argument("--lib-dir", default=None,
                        help="Remote library directory (default: $REMOTE_LIB_DIR or ~/.remote_libs)")
    parser.add_argument("-l", "--list", action="store_true", help="Print the imported command names")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logger = get_logger(args.verbose)

    try:
        # SSH_PORT and PROBE_TIMEOUT are parsed here
        provisioner = SessionProvisioner(
            username=args.user,
            port=args.port,
            key_filepath=args.key,
            lib_dir=args.lib_dir,
        )
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1
    with provisioner:
        try:
            namespace = provisioner.ensure_remote_capability(
                args.host, args.library, commands=args.commands, force=args.force
            )
        except (ProvisioningError, ValueError) as e:
            logger.error(str(e))
            return 1

        if args.list:
            for name in namespace.names():
                print(name)
    return 0


if __name__ == "__main__":
    sys.exit(main())
