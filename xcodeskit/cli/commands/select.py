"""
Select command implementation.

Run without arguments to choose interactively from the installed versions,
or give a version or an absolute path to a bundle.
"""

import asyncio
import logging
import re
import threading
from typing import List, Optional

from xcodeskit.core.exceptions import NoninteractiveSelectionError, NotFoundError
from xcodeskit.core.outcome import Outcome
from xcodeskit.toolchain.installed import InstalledToolchain

logger = logging.getLogger(__name__)


async def read_line(prompt: str, input_func=input) -> str:
    """
    Read one answer on a daemon thread.

    Cancelling the caller abandons the thread instead of waiting for the user
    to press Enter, so an interrupted prompt does not hold the process open.
    """
    loop = asyncio.get_running_loop()
    answer = loop.create_future()

    def _deliver(text, error):
        if answer.done():
            return
        if error is not None:
            answer.set_exception(error)
        else:
            answer.set_result(text)

    def _read():
        text, error = None, None
        try:
            text = input_func(prompt)
        except Exception as e:
            error = e
        try:
            loop.call_soon_threadsafe(_deliver, text, error)
        except RuntimeError:
            logger.debug("Prompt answered after the event loop closed")

    threading.Thread(target=_read, name="xcodes-prompt", daemon=True).start()
    return await answer


async def prompt_for_toolchain(
    installed: List[InstalledToolchain],
    current: Optional[InstalledToolchain],
    input_func=input,
) -> InstalledToolchain:
    """
    Ask the user to pick one of the installed toolchains.

    Raises:
        NotFoundError: If the answer is not one of the listed numbers
        NoninteractiveSelectionError: If input is closed
    """
    print("Available Xcode versions:")
    for number, toolchain in enumerate(installed, start=1):
        marker = " (Selected)" if current is not None and current.path == toolchain.path else ""
        print(f"{number}) {toolchain.version.description}{marker}")

    try:
        answer = await read_line("Enter the number of the Xcode to select: ", input_func)
    except EOFError as e:
        raise NoninteractiveSelectionError("Input closed before a choice was made") from e

    answer = answer.strip()
    if not re.fullmatch(r"[0-9]+", answer) or not 1 <= int(answer) <= len(installed):
        raise NotFoundError(f"Not a valid number: {answer!r}")
    return installed[int(answer) - 1]


async def run(args, context) -> Outcome:
    """
    Run the select command.

    Args:
        args: Parsed arguments (version_or_path tokens, print_path flag)
        context: AppContext for this invocation

    Returns:
        Success outcome; failures are raised
    """
    if args.print_path:
        selected = context.selection.selected()
        if selected is None:
            raise NotFoundError("No Xcode is selected")
        print(selected.path)
        return Outcome.success()

    token = " ".join(args.version_or_path)
    result = await context.selection.select(token or None, interactive=context.interactive)

    if not result.changed:
        return Outcome.success(f"Xcode {result.toolchain.version} is already selected")
    return Outcome.success(
        f"Selected Xcode {result.toolchain.version} at {result.toolchain.path}"
    )
