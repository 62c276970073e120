from typing import Union

from rich.console import Console
from rich.table import Table

from .. import constants

__module__ = "trustcheck.cli"

LEVELS = [
    constants.RESULT_LEVEL_FAIL,
    constants.RESULT_LEVEL_WARN,
    constants.RESULT_LEVEL_PASS,
    constants.RESULT_LEVEL_INFO,
]


def target_label(hostname: str = None, port: int = None, aside: str = "") -> str:
    """Right hand column text, the origin of a line such as `core` or `host:port`"""
    if not hostname:
        return aside
    target = f"{hostname}:{port}" if port else hostname
    return f"{aside} {target}".strip()


def result_markup(
    message: str,
    level: str,
    result_text: str = None,
    icon: str = "",
) -> str:
    color = constants.CLI_COLOR_MAP[level]
    if result_text is None:
        result_text = constants.DEFAULT_MAP[level]
    return f"{icon} [{color}]{result_text} {message}[/{color}]".strip()


def outputln(
    message: str,
    con: Union[Console, None] = None,
    result_level: str = constants.RESULT_LEVEL_INFO,
    result_text: str = None,
    result_label: str = "",
    result_icon: str = None,
    use_icons: bool = False,
    aside: str = "",
    hostname: str = None,
    port: int = None,
) -> None:
    if not isinstance(con, Console) or result_level not in LEVELS:
        return
    icon = ""
    if use_icons:
        icon = result_icon or constants.CLI_ICON_MAP[result_level]
    table = Table.grid(expand=True)
    table.add_column()
    table.add_column(justify="right", style="dim", no_wrap=True, overflow=None)
    table.add_row(
        result_markup(message, result_level, result_text, icon),
        f"{result_label} {target_label(hostname, port, aside)}".strip(),
    )
    con.print(table)


def infoln(message: str, con: Union[Console, None] = None, **kwargs) -> None:
    outputln(message, con, result_level=constants.RESULT_LEVEL_INFO, **kwargs)


def failln(message: str, con: Union[Console, None] = None, **kwargs) -> None:
    outputln(message, con, result_level=constants.RESULT_LEVEL_FAIL, **kwargs)


def passln(message: str, con: Union[Console, None] = None, **kwargs) -> None:
    outputln(message, con, result_level=constants.RESULT_LEVEL_PASS, **kwargs)
