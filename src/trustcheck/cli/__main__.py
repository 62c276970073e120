import sys
import logging
import argparse
from pathlib import Path
from typing import Union

from rich.console import Console
from rich.logging import RichHandler
from art import text2art

from . import outputln
from .check import check
from .. import constants, util, __version__
from ..config import get_config, DEFAULT_CONFIG

__module__ = "trustcheck.cli"

REMOTE_URL = "https://pypi.org/project/trustcheck/"
APP_BANNER = text2art("trustcheck", font="tarty4")

assert sys.version_info >= (3, 9), "Requires Python 3.9 or newer"
console = Console()
logger = logging.getLogger(__name__)


class _HelpAction(argparse._HelpAction):
    def __call__(self, parser, namespace, values, option_string=None):
        parser.print_help()
        parser.exit()


def build_parser() -> argparse.ArgumentParser:
    cli = argparse.ArgumentParser(
        prog="trustcheck",
        description=f"Release {__version__} {REMOTE_URL}",
        add_help=False,
    )
    cli.add_argument("--version", dest="show_version", action="store_true")
    cli.add_argument(
        "-q",
        "--quiet",
        help="show no stdout (useful in automation when producing structured data outputs)",
        dest="quiet",
        action="store_true",
    )
    cli.add_argument("--no-banner", dest="hide_banner", action="store_true")
    group = cli.add_mutually_exclusive_group()
    group.add_argument(
        "-v",
        "--errors-only",
        help="set logging level to ERROR (default CRITICAL)",
        dest="log_level_error",
        action="store_true",
    )
    group.add_argument(
        "-vv",
        "--warning",
        help="set logging level to WARNING (default CRITICAL)",
        dest="log_level_warning",
        action="store_true",
    )
    group.add_argument(
        "-vvv",
        "--info",
        help="set logging level to INFO (default CRITICAL)",
        dest="log_level_info",
        action="store_true",
    )
    group.add_argument(
        "-vvvv",
        "--debug",
        help="set logging level to DEBUG (default CRITICAL)",
        dest="log_level_debug",
        action="store_true",
    )
    sub_parsers = cli.add_subparsers()
    check_parser = sub_parsers.add_parser(
        "check",
        prog="trustcheck check",
        description=cli.description,
        add_help=False,
        help="Retrieve, validate and check revocation of a server certificate chain",
        parents=[cli],
    )
    check_parser.set_defaults(subcommand="check")
    check_parser.add_argument("-h", "--help", action=_HelpAction)
    check_parser.add_argument(
        "-u",
        "--url",
        dest="targets",
        nargs="*",
        help="Hostnames or https:// URLs to check. ~$ trustcheck check -u example.com https://example.org:8443",
    )
    check_parser.add_argument(
        "--ca",
        "--tlscacert",
        help="path to a PEM encoded CA bundle, used as the only trust source",
        dest="cafile",
        default=None,
    )
    check_parser.add_argument(
        "--insecure",
        help="when the trusted handshake fails, read the chain without verification (never reported as trusted)",
        dest="insecure",
        action="store_true",
        default=None,
    )
    check_parser.add_argument(
        "--skip-ocsp",
        help="do not query the OCSP responder of the leaf certificate",
        dest="skip_ocsp",
        action="store_true",
        default=None,
    )
    check_parser.add_argument(
        "--no-feed",
        help="do not download the root program trust feed",
        dest="no_feed",
        action="store_true",
    )
    check_parser.add_argument(
        "--timeout",
        help=f"seconds allowed for each network operation (Default: {constants.DEFAULT_TIMEOUT})",
        dest="timeout",
        type=int,
        default=None,
    )
    check_parser.add_argument(
        "--workers",
        help=f"hosts checked concurrently (Default: {constants.DEFAULT_WORKERS})",
        dest="workers",
        type=int,
        default=None,
    )
    check_parser.add_argument(
        "--strict",
        help="exit 2 unless every chain is trusted, valid and not revoked",
        dest="strict",
        action="store_true",
    )
    check_parser.add_argument(
        "-c",
        "--config",
        help=f"Provide the path to a configuration file (Default: {DEFAULT_CONFIG})",
        dest="config_file",
        default=DEFAULT_CONFIG,
    )
    check_parser.add_argument(
        "-O",
        "--json",
        help="Store the results to file as JSON",
        dest="json_file",
        default=None,
    )
    return cli


def main(argv: list = None) -> int:
    cli = build_parser()
    args = cli.parse_args(argv)
    if args.show_version:
        if args.hide_banner:
            console.print(f"trustcheck=={__version__}\n{REMOTE_URL}")
        else:
            console.print(
                f"[bold][{constants.CLI_COLOR_PRIMARY}]{APP_BANNER}[/{constants.CLI_COLOR_PRIMARY}][/bold]\ntrustcheck=={__version__}\n{REMOTE_URL}"
            )
        return 0

    try:
        logger.info(f"subcommand {args.subcommand}")
    except AttributeError:
        cli.print_help()
        return 0

    log_level = logging.CRITICAL
    if args.log_level_error:
        log_level = logging.ERROR
    if args.log_level_warning:
        log_level = logging.WARNING
    if args.log_level_info:
        log_level = logging.INFO
    if args.log_level_debug:
        log_level = logging.DEBUG

    handlers = []
    log_format = "%(asctime)s - %(name)s - [%(levelname)s] %(message)s"
    if not args.quiet and sys.stdout.isatty():
        log_format = "%(message)s"
        handlers.append(RichHandler(rich_tracebacks=True))
    logging.basicConfig(format=log_format, level=log_level, handlers=handlers)

    try:
        config = _check_config(vars(args), args.config_file)
    except AttributeError as err:
        console.print(
            f"[{constants.CLI_COLOR_FAIL}]Invalid configuration[/{constants.CLI_COLOR_FAIL}] {err}"
        )
        return 1
    if not config.get("targets"):
        console.print(
            f"[{constants.CLI_COLOR_FAIL}]Missing value supplied for argument[/{constants.CLI_COLOR_FAIL}] -u|--url"
        )
        return 1
    use_console = (
        any(n.get("type") == "console" for n in config.get("outputs", []))
        and not args.quiet
    )
    use_icons = any(
        n.get("type") == "console" and n.get("use_icons")
        for n in config.get("outputs", [])
    )
    if use_console and not (args.quiet or args.hide_banner):
        console.print(
            f"[bold][{constants.CLI_COLOR_PRIMARY}]{APP_BANNER}[/{constants.CLI_COLOR_PRIMARY}][/bold]"
        )
        console.print(
            f"{__version__}\t\t[bold][{constants.CLI_COLOR_PASS}]PASS[/{constants.CLI_COLOR_PASS}] [{constants.CLI_COLOR_WARN}]WARN[/{constants.CLI_COLOR_WARN}] [{constants.CLI_COLOR_FAIL}]FAIL[/{constants.CLI_COLOR_FAIL}] [{constants.CLI_COLOR_INFO}]INFO[/{constants.CLI_COLOR_INFO}][/bold]"
        )
    if Path(args.config_file).is_file():
        outputln(
            args.config_file,
            aside="core",
            result_text="CONFIG",
            result_icon=":file_folder:",
            con=console if use_console else None,
            use_icons=use_icons,
        )
    return check(
        config,
        console=console if use_console else None,
        strict=args.strict,
    )


def _check_config(cli_args: dict, filename: Union[str, None]) -> dict:
    custom = {"defaults": {}}
    for key in ["cafile", "insecure", "skip_ocsp", "timeout", "workers"]:
        if cli_args.get(key) is not None:
            custom["defaults"][key] = cli_args[key]
    if cli_args.get("no_feed"):
        custom["defaults"]["use_feed"] = False
    targets = []
    for target in cli_args.get("targets") or []:
        try:
            hostname, port = util.parse_target(target)
        except ValueError as err:
            raise AttributeError(str(err)) from err
        targets.append({"hostname": hostname, "port": port})
    config = get_config(custom_values=custom, filename=filename)
    if targets:
        config["targets"] = targets
    if cli_args.get("json_file"):
        config["outputs"] = [
            n for n in config.get("outputs", []) if n.get("type") != "json"
        ]
        config["outputs"].append({"type": "json", "path": cli_args.get("json_file")})
    return config


if __name__ == "__main__":
    sys.exit(main())
