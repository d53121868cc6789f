"""Interactive line console for a running Siotchain node."""

from __future__ import annotations

import logging
from typing import Callable

from .commands import EXIT_COMMAND
from .dispatcher import RequestDispatcher

logger = logging.getLogger(__name__)

PROMPT = "> "
BANNER = "go into console mode and wait for user input"


def run_session(
    dispatcher: RequestDispatcher,
    *,
    read_line: Callable[[str], str] | None = None,
    out: Callable[[str], None] | None = None,
) -> int:
    """Read requests until ``exit`` or end of input, dispatching one at a time.

    Returns the number of lines handed to the dispatcher.
    """

    read_line = read_line or input
    out = out or print
    out(BANNER)
    dispatched = 0
    while True:
        try:
            line = read_line(PROMPT)
        except EOFError:
            logger.debug("End of input, leaving console")
            break
        if line.strip() == EXIT_COMMAND:
            break
        dispatcher.handle(line)
        dispatched += 1
    return dispatched


def console_main(
    dispatcher: RequestDispatcher,
    request: str | None = None,
    *,
    read_line: Callable[[str], str] | None = None,
    out: Callable[[str], None] | None = None,
) -> None:
    """Run a single pre-supplied request, or the interactive loop without one."""

    if request:
        dispatcher.handle(request)
        return
    run_session(dispatcher, read_line=read_line, out=out)
