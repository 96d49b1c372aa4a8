#!/usr/bin/env python3
"""tele - SSH destination vault.

Stores SSH host/port/user/password profiles encrypted under a master
password and opens sessions with them through sshpass.
"""

import argparse
import getpass
import logging
import os
import sys

from . import __version__, sshpass
from .config import PASSWORD_ENV, debug_enabled, get_vault_dir
from .errors import AlreadyInitializedError, TeleError, WrongPasswordError
from .store import JsonStore
from .vault import Vault

logger = logging.getLogger(__name__)

DEFAULT_PORT = "22"


def get_password(prompt="Enter master password: "):
    """Get password from environment variable or prompt.

    Checks TELE_PASSWORD environment variable first for automation/testing.
    Falls back to interactive getpass prompt if not set.

    Security note: Using TELE_PASSWORD in environment variables is less secure
    as it may be visible in process lists. Only use in isolated environments.
    """
    env_password = os.environ.get(PASSWORD_ENV)
    if env_password:
        return env_password
    return getpass.getpass(prompt)


def prompt_line(prompt, default=""):
    """Prompt for a line of text, returning default on empty input."""
    if default:
        value = input(f"{prompt} [{default}]: ")
    else:
        value = input(f"{prompt}: ")
    value = value.strip()
    return value or default


def open_vault(args):
    vault_dir = get_vault_dir(args.dir)
    logger.debug("vault dir: %s", vault_dir)
    return Vault(JsonStore(vault_dir))


def cmd_init(args):
    """Set up the master password."""
    vault = open_vault(args)
    if vault.is_initialized():
        raise AlreadyInitializedError()

    password = get_password("Enter master password: ")
    if not password:
        raise TeleError("Password cannot be empty.")
    confirm = get_password("Confirm master password: ")
    if password != confirm:
        raise TeleError("Passwords do not match.")

    vault.initialize(password)
    print("Master password set successfully.")


def cmd_add(args):
    """Add a new SSH destination."""
    vault = open_vault(args)
    vault.check_new_name(args.name)

    master_password = get_password()
    vault.verify_master(master_password)

    host = prompt_line("Host")
    if not host:
        raise TeleError("Host cannot be empty.")
    port = prompt_line("Port", DEFAULT_PORT)
    user = prompt_line("User")
    if not user:
        raise TeleError("User cannot be empty.")
    dest_password = getpass.getpass("Password: ")

    vault.add_destination(
        master_password, args.name, host, port, user, dest_password, verify=False,
    )
    print(f"Destination {args.name!r} added.")


def cmd_go(args):
    """SSH into a destination."""
    vault = open_vault(args)
    master_password = get_password()
    conn = vault.open_destination(master_password, args.name)
    sshpass.launch(conn, vault.store.root)


def cmd_list(args):
    """List saved destinations."""
    vault = open_vault(args)
    infos, failures = vault.list_destinations()

    for name, error in failures.items():
        print(f"Error reading {name}: {error}", file=sys.stderr)

    if not infos and not failures:
        print("No destinations saved.")
        return

    for info in infos:
        print(f"  {info.name} → {info.user}@{info.host}:{info.port}")


def cmd_rm(args):
    """Remove a destination."""
    vault = open_vault(args)
    vault.remove_destination(args.name)
    print(f"Destination {args.name!r} removed.")


def configure_logging(verbose):
    level = logging.DEBUG if verbose or debug_enabled() else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_parser():
    parser = argparse.ArgumentParser(
        prog='tele',
        description="tele - SSH destination vault"
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f"%(prog)s {__version__}"
    )
    parser.add_argument('--dir', help='Vault directory (default: $TELE_HOME or <config dir>/tele)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # init
    subparsers.add_parser('init', help='Set up master password')

    # add
    add_parser = subparsers.add_parser('add', help='Add a new SSH destination')
    add_parser.add_argument('name', help='Destination name')

    # go
    go_parser = subparsers.add_parser('go', help='SSH into a destination')
    go_parser.add_argument('name', help='Destination name')

    # list
    subparsers.add_parser('list', help='List all saved destinations')

    # rm
    rm_parser = subparsers.add_parser('rm', help='Remove a destination')
    rm_parser.add_argument('name', help='Destination name')

    return parser


COMMANDS = {
    'init': cmd_init,
    'add': cmd_add,
    'go': cmd_go,
    'list': cmd_list,
    'rm': cmd_rm,
}


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help(sys.stderr)
        sys.exit(1)

    configure_logging(args.verbose)

    try:
        COMMANDS[args.command](args)
    except WrongPasswordError as e:
        print(e, file=sys.stderr)
        sys.exit(1)
    except TeleError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except (EOFError, KeyboardInterrupt):
        print(file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
