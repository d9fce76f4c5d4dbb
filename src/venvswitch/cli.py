"""
command-line interface for venvswitch.

provides commands for listing, inspecting, creating and running python
environments, and for starting the lsp server.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from .config import Config
from .errors import ConfigError, CreationFailed, VenvSwitchError
from .lsp_server import run_server_stdio
from .manager import EnvironmentManager
from .models import EnvironmentDescriptor

VERSION = "0.1.0"


def create_parser() -> argparse.ArgumentParser:
    """
    create the argument parser for the cli.

    returns: `argparse.ArgumentParser`
        configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="venvswitch",
        description="discover, inspect and switch python virtual and conda environments",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  venvswitch list                           # list discovered environments
  venvswitch list --json                    # output as json
  venvswitch python myproject/.venv         # print the interpreter path
  venvswitch packages conda/base            # list installed packages
  venvswitch create .venv                   # create a venv in the cwd
  venvswitch run myproject/.venv main.py    # run a script in an environment
  venvswitch lsp                            # start lsp server
        """,
    )
    _ = parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {VERSION}",
    )

    # shared by every subcommand
    common = argparse.ArgumentParser(add_help=False)
    _ = common.add_argument(
        "--debug",
        action="store_true",
        help="enable debug logging for troubleshooting",
    )

    subparsers = parser.add_subparsers(dest="command", help="available commands")

    list_parser = subparsers.add_parser("list", parents=[common], help="list discovered environments")
    _ = list_parser.add_argument("--json", action="store_true", dest="json_output", help="output as json")
    _ = list_parser.add_argument(
        "--no-conda",
        action="store_true",
        help="skip conda environments",
    )

    active_parser = subparsers.add_parser(
        "active",
        parents=[common],
        help="show the environment active in the calling shell",
    )
    _ = active_parser.add_argument("--json", action="store_true", dest="json_output", help="output as json")

    python_parser = subparsers.add_parser(
        "python",
        parents=[common],
        help="print the interpreter path of an environment",
    )
    _ = python_parser.add_argument("identifier", help="environment identifier, e.g. myproject/.venv")

    packages_parser = subparsers.add_parser(
        "packages",
        parents=[common],
        help="list packages installed in an environment",
    )
    _ = packages_parser.add_argument("identifier", help="environment identifier")

    create_parser_ = subparsers.add_parser(
        "create",
        parents=[common],
        help="create a virtual environment",
    )
    _ = create_parser_.add_argument("name", nargs="?", default="venv", help="directory name (default: venv)")
    _ = create_parser_.add_argument(
        "--path",
        type=str,
        help="directory to create the environment in (default: current directory)",
    )

    run_parser = subparsers.add_parser(
        "run",
        parents=[common],
        help="run a python script inside an environment",
    )
    _ = run_parser.add_argument("identifier", help="environment identifier")
    _ = run_parser.add_argument("script", help="python script to run")
    _ = run_parser.add_argument("script_args", nargs=argparse.REMAINDER, help="arguments for the script")

    _ = subparsers.add_parser("lsp", parents=[common], help="start language server protocol server")

    return parser


def _format_descriptor(descriptor: EnvironmentDescriptor) -> str:
    version = f"  python {descriptor.python_version}" if descriptor.python_version else ""
    return f"{descriptor.identifier:<32} {descriptor.display_name:<28} {descriptor.cached_path}{version}"


def _not_found(identifier: str) -> int:
    print(f"venvswitch: error: environment not found: {identifier}", file=sys.stderr)
    print("run 'venvswitch list' to see discovered environments", file=sys.stderr)
    return 1


def handle_list(args: argparse.Namespace, manager: EnvironmentManager) -> int:
    """
    handle the list command.

    returns: `int`
        exit code
    """
    json_output = bool(getattr(args, "json_output", False))
    if bool(getattr(args, "no_conda", False)):
        manager.config.show_conda = False

    environments = manager.list_environments()

    if json_output:
        print(json.dumps([d.to_dict() for d in environments], indent=2))
        return 0

    if not environments:
        print("no environments found")
        return 0

    for descriptor in environments:
        print(_format_descriptor(descriptor))

    count = len(environments)
    print(f"{count} environment{'' if count == 1 else 's'} found")
    return 0


def handle_active(args: argparse.Namespace, manager: EnvironmentManager) -> int:
    """
    handle the active command.

    returns: `int`
        exit code (0 = an environment is active, 1 = none)
    """
    json_output = bool(getattr(args, "json_output", False))
    descriptor = manager.detect_externally_active()

    if json_output:
        print(json.dumps(descriptor.to_dict() if descriptor else None, indent=2))
    elif descriptor is None:
        print("no environment is active")
    else:
        print(_format_descriptor(descriptor))

    return 0 if descriptor is not None else 1


def handle_python(args: argparse.Namespace, manager: EnvironmentManager) -> int:
    """
    handle the python command.

    returns: `int`
        exit code
    """
    identifier = str(getattr(args, "identifier", ""))
    descriptor = manager.find(identifier)
    if descriptor is None:
        return _not_found(identifier)

    interpreter = manager.get_interpreter_path(descriptor)
    if interpreter is None:
        print(f"venvswitch: error: no python interpreter in {descriptor.cached_path}", file=sys.stderr)
        return 1

    print(interpreter)
    return 0


def handle_packages(args: argparse.Namespace, manager: EnvironmentManager) -> int:
    """
    handle the packages command.

    package listing never fails hard; diagnostics are printed like packages.

    returns: `int`
        exit code
    """
    identifier = str(getattr(args, "identifier", ""))
    descriptor = manager.find(identifier)
    if descriptor is None:
        return _not_found(identifier)

    for line in manager.get_packages(descriptor):
        print(line)
    return 0


def handle_create(args: argparse.Namespace, manager: EnvironmentManager) -> int:
    """
    handle the create command.

    returns: `int`
        exit code
    """
    name = str(getattr(args, "name", "venv"))
    path_raw = getattr(args, "path", None)

    print(f"creating virtual environment: {name}")
    try:
        result = manager.create_environment(name, path_raw)
    except CreationFailed as e:
        print(f"venvswitch: error: {e.msg}", file=sys.stderr)
        return 1

    if not result:
        print(f"venvswitch: error: {result.reason}", file=sys.stderr)
        return 1

    if (descriptor := result.descriptor) is not None:
        print(f"created {descriptor.identifier} at {descriptor.cached_path}")
    return 0


def handle_run(args: argparse.Namespace, manager: EnvironmentManager) -> int:
    """
    handle the run command.

    returns: `int`
        the script's exit code, or 1 if it could not be started
    """
    identifier = str(getattr(args, "identifier", ""))
    script = Path(str(getattr(args, "script", "")))
    script_args_raw = getattr(args, "script_args", None)
    script_args: list[str] = [str(a) for a in script_args_raw] if script_args_raw else []  # pyright: ignore[reportAny]

    result = manager.activate(identifier)
    if not result:
        print(f"venvswitch: error: {result.reason}", file=sys.stderr)
        return 1

    try:
        outcome = asyncio.run(manager.run_script(script, *script_args))
    except KeyboardInterrupt:
        print("venvswitch: run cancelled", file=sys.stderr)
        return 130
    except VenvSwitchError as e:
        print(f"venvswitch: error: {e.msg}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"venvswitch: error: could not start {script}: {e}", file=sys.stderr)
        return 1
    finally:
        _ = manager.deactivate()

    if outcome.stdout:
        print(outcome.stdout, end="")
    if outcome.stderr:
        print(outcome.stderr, end="", file=sys.stderr)
    return outcome.returncode


def handle_lsp(_args: argparse.Namespace, config: Config) -> int:
    """
    handle the lsp command.

    returns: `int`
        exit code
    """
    try:
        run_server_stdio(config)
        return 0
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        print(f"error: lsp server failed: {e}", file=sys.stderr)
        return 2


def main(argv: Sequence[str] | None = None) -> int:
    """
    run the cli main entry point.

    arguments:
        `argv: Sequence[str] | None`
            command-line arguments (default: sys.argv[1:])

    returns: `int`
        exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    cmd_raw = getattr(args, "command", None)
    command = str(cmd_raw) if cmd_raw is not None else None  # pyright: ignore[reportAny]

    if not command:
        parser.print_help()
        return 2

    if bool(getattr(args, "debug", False)):
        logging.basicConfig(
            level=logging.DEBUG,
            format="[%(name)s] %(message)s",
        )

    try:
        config = Config.load()
    except ConfigError as e:
        print(f"venvswitch: error: {e.msg}", file=sys.stderr)
        return 2

    if command == "lsp":
        return handle_lsp(args, config)

    manager = EnvironmentManager(config)
    handlers = {
        "list": handle_list,
        "active": handle_active,
        "python": handle_python,
        "packages": handle_packages,
        "create": handle_create,
        "run": handle_run,
    }
    handler = handlers.get(command)
    if handler is None:
        parser.print_help()
        return 2
    return handler(args, manager)


if __name__ == "__main__":
    sys.exit(main())
