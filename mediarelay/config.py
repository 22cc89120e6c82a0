"""Relay server settings and their command-line parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

__all__ = ["Config"]

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
_PORT_MASK = 0xFFFF


def _parse_int(text: str) -> int:
    """Parse the integer at the start of ``text``, ignoring anything after it."""
    match = _LEADING_INT.match(text)
    if match is None:
        raise ValueError(f"invalid number: {text!r}")
    return int(match.group(1))


@dataclass
class Config:
    """Listening address, backlog and subscriber queue settings."""

    host: str = "0.0.0.0"
    port: int = 9000
    backlog: int = 128
    max_subscriber_queue: int = 64
    disconnect_slow_subscriber: bool = False

    @classmethod
    def from_argv(cls, argv: Iterable[str]) -> Config:
        """Build a config from command-line arguments, program name excluded.

        Raises ValueError for an unknown option, an option missing its value,
        or a value that is not a number.
        """
        config = cls()
        arguments = iter(argv)
        for argument in arguments:
            if argument == "--disconnect-slow-subscriber":
                config.disconnect_slow_subscriber = True
                continue
            if argument not in ("--host", "--port", "--backlog", "--queue"):
                raise ValueError(f"unknown argument: {argument}")
            value = next(arguments, None)
            if value is None:
                raise ValueError(f"unknown argument: {argument}")
            if argument == "--host":
                config.host = value
            elif argument == "--port":
                config.port = _parse_int(value) & _PORT_MASK
            elif argument == "--backlog":
                config.backlog = _parse_int(value)
            else:
                depth = _parse_int(value)
                if depth < 0:
                    raise ValueError(f"invalid queue depth: {value!r}")
                config.max_subscriber_queue = depth
        return config