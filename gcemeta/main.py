import argparse
import logging
import sys
from typing import Callable, Dict, List, Optional, Tuple

from .logging import configure_logging
from .metadata import MetadataClient, MetadataError

logger = logging.getLogger("gcemeta")

VERSION = "0.2"

VALUE_COMMANDS: Dict[str, Tuple[str, Callable[[MetadataClient], str]]] = {
    "project-id": ("The project ID.", MetadataClient.project_id),
    "numeric-project-id": (
        "The numeric project ID of the instance, which is not the same as the "
        "project name visible in the Google Cloud Platform Console.",
        MetadataClient.numeric_project_id,
    ),
    "desc": (
        "The free-text description of an instance, assigned using the "
        "--description flag, or set in the API.",
        MetadataClient.description,
    ),
    "hostname": ("The full host name of the instance.", MetadataClient.hostname),
    "instance-name": (
        "The short host name of the instance.",
        MetadataClient.instance_name,
    ),
    "instance-id": (
        "The ID of the instance. This is a unique, numerical ID that is "
        "generated by Google Compute Engine.",
        MetadataClient.instance_id,
    ),
    "machine-type": (
        "The machine type name of the instance's host machine.",
        MetadataClient.machine_type,
    ),
    "zone": ("The instance's zone.", MetadataClient.zone),
    "internal-ip": (
        "The primary internal IP address of the instance.",
        MetadataClient.internal_ip,
    ),
    "external-ip": (
        "The primary external IP address of the instance.",
        MetadataClient.external_ip,
    ),
}

LIST_COMMANDS: Dict[str, Tuple[str, Callable[[MetadataClient], List[str]]]] = {
    "tags": ("The instance's tags, one per line.", MetadataClient.instance_tags),
    "attributes": (
        "The names of the instance's custom attributes, one per line.",
        MetadataClient.instance_attributes,
    ),
}


def main_help(parser, *_) -> None:
    parser.print_help()


def main_value(args, client: MetadataClient) -> None:
    print(args.accessor(client))


def main_list(args, client: MetadataClient) -> None:
    for value in args.accessor(client):
        print(value)


def main_on_gce(args, client: MetadataClient) -> None:
    print("true" if client.on_gce() else "false")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gcemeta",
        description="Query the Google Compute Engine metadata server.",
        add_help=True,
    )
    parser.set_defaults(func=lambda *x: main_help(parser, *x), command=None)
    parser.add_argument("--debug", help="output debug info", action="store_true")
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {VERSION}"
    )

    subparsers = parser.add_subparsers(dest="command", metavar="command")

    for name, (description, accessor) in VALUE_COMMANDS.items():
        value_parser = subparsers.add_parser(
            name, help=description, description=description
        )
        value_parser.set_defaults(func=main_value, accessor=accessor)

    for name, (description, accessor) in LIST_COMMANDS.items():
        list_parser = subparsers.add_parser(
            name, help=description, description=description
        )
        list_parser.set_defaults(func=main_list, accessor=accessor)

    on_gce_parser = subparsers.add_parser(
        "on-gce",
        help="Whether this process is running on Google Compute Engine.",
    )
    on_gce_parser.set_defaults(func=main_on_gce)

    return parser


def _command_names() -> List[str]:
    return [*VALUE_COMMANDS, *LIST_COMMANDS, "on-gce"]


def main(
    argv: Optional[List[str]] = None, *, client: Optional[MetadataClient] = None
) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = build_parser()

    # Anything but a single known command shows help and succeeds.
    positionals = [arg for arg in argv if not arg.startswith("-")]
    if len(positionals) > 1 or (
        positionals and positionals[0] not in _command_names()
    ):
        parser.print_help()
        return 0

    args = parser.parse_args(argv)

    if args.debug:
        configure_logging(logging.DEBUG)
    else:
        configure_logging(logging.WARNING)

    if args.command is None:
        args.func(args, client)
        return 0

    if client is None:
        client = MetadataClient.from_env()

    try:
        args.func(args, client)
    except MetadataError as exc:
        logger.debug("command %s failed", args.command, exc_info=True)
        print(exc, file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
