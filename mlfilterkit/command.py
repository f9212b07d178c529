"""Runs a companion server command in its own process group."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import threading
import time
from typing import IO, Iterable, Mapping, Optional, Sequence, Union

WAIT_DELAY = 5.0
_POLL_INTERVAL = 0.05

EnvEntries = Union[Mapping[str, str], Iterable[str]]


class CommandError(Exception):
    """Raised when the command cannot be started or exits unsuccessfully."""


def _environment(env: Optional[EnvEntries]) -> dict[str, str]:
    environment = dict(os.environ)
    if env is None:
        return environment
    if isinstance(env, Mapping):
        environment.update(env)
        return environment
    for entry in env:
        key, sep, value = entry.partition("=")
        if sep:
            environment[key] = value
    return environment


def _process_group_options() -> dict:
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    if sys.version_info >= (3, 11):
        return {"process_group": 0}
    return {"preexec_fn": os.setpgrp}


def _interrupt(process: subprocess.Popen, logger: logging.Logger) -> None:
    if sys.platform == "win32":
        logger.debug("Terminating command process tree")
        subprocess.run(
            ["taskkill", "/T", "/F", "/PID", str(process.pid)],
            capture_output=True,
            check=False,
        )
        return
    logger.debug("Sending interrupt signal to command process group")
    try:
        os.killpg(process.pid, signal.SIGINT)
    except ProcessLookupError:
        pass


def _forward_output(stream: IO[str], logger: logging.Logger) -> None:
    for line in stream:
        logger.info(line.rstrip("\r\n"))


def _exit_description(returncode: int) -> str:
    if returncode >= 0:
        return f"exit status {returncode}"
    number = -returncode
    name = signal.strsignal(number) if hasattr(signal, "strsignal") else None
    return f"signal: {name.lower()}" if name else f"signal {number}"


def launch_command(
    command: Sequence[str],
    env: Optional[EnvEntries] = None,
    cancel: Optional[threading.Event] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Run ``command`` until it exits, forwarding its output to ``logger``.

    ``env`` adds ``KEY=VALUE`` entries (or a mapping) to the current
    environment. Setting ``cancel`` interrupts the command's process group;
    if it has not exited ``WAIT_DELAY`` seconds later it is killed.
    """
    logger = logger if logger is not None else logging.getLogger(__name__)
    cancel = cancel if cancel is not None else threading.Event()
    arguments = list(command)
    if not arguments:
        raise CommandError("failed to launch command: empty command")

    logger.debug("Launching command: %s", arguments)

    if cancel.is_set():
        raise CommandError("failed to launch command: context canceled")

    try:
        process = subprocess.Popen(
            arguments,
            env=_environment(env),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            **_process_group_options(),
        )
    except OSError as err:
        raise CommandError(f"failed to launch command: {err}") from err

    with process:
        reader = threading.Thread(
            target=_forward_output, args=(process.stdout, logger), daemon=True
        )
        reader.start()

        cancelled_at: Optional[float] = None
        while True:
            try:
                returncode = process.wait(timeout=_POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                pass
            if cancelled_at is None and cancel.is_set():
                cancelled_at = time.monotonic()
                _interrupt(process, logger)
            elif cancelled_at is not None and time.monotonic() - cancelled_at >= WAIT_DELAY:
                process.kill()
                returncode = process.wait()
                break

        reader.join(timeout=WAIT_DELAY)

    if returncode != 0:
        raise CommandError(f"command exited with error: {_exit_description(returncode)}")
    if cancelled_at is not None:
        raise CommandError("command exited with error: context canceled")