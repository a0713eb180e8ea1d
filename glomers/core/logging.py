"""Logging setup for node processes.

Standard output carries the wire protocol, so every handler writes to stderr.
Each record carries the id of the node that produced it in ``extra["node_id"]``;
a harness running many nodes interleaves their stderr, and an in-process
cluster runs several nodes in one interpreter.
"""

from __future__ import annotations

import sys
from collections.abc import Iterable
from typing import Any

from loguru import logger

from glomers.datastructures.type_aliases import NodeId

from .config import NodeSettings

UNKNOWN_NODE = "-"

DEFAULT_LOG_FORMAT = (
    "{time:HH:mm:ss.SSS} | {level: <8} | {extra[node_id]: <6} | "
    "{name}:{function}:{line} - {message}"
)


def _qualified_scopes(debug_scopes: Iterable[str]) -> tuple[str, ...]:
    scopes: list[str] = []
    for scope in debug_scopes:
        scope = scope.strip()
        if not scope:
            continue
        scopes.append(scope if scope.startswith("glomers") else f"glomers.{scope}")
    return tuple(scopes)


def configure_logging(settings: NodeSettings) -> tuple[int, ...]:
    """Install stderr handlers for ``settings``; returns the handler ids.

    Modules named in ``settings.debug_scopes`` (with or without the
    ``glomers.`` prefix) get a second handler that passes their DEBUG records
    even when the main level is higher.
    """
    logger.remove()
    logger.configure(extra={"node_id": UNKNOWN_NODE})

    handler_ids = [
        logger.add(
            sys.stderr,
            level=settings.log_level,
            format=DEFAULT_LOG_FORMAT,
            colorize=settings.colorize_logs,
        )
    ]

    scopes = _qualified_scopes(settings.debug_scopes)
    if scopes and settings.log_level.upper() != "DEBUG":

        def in_debug_scope(record: dict[str, Any]) -> bool:
            return record["level"].name == "DEBUG" and record["name"].startswith(scopes)

        handler_ids.append(
            logger.add(
                sys.stderr,
                level="DEBUG",
                format=DEFAULT_LOG_FORMAT,
                colorize=settings.colorize_logs,
                filter=in_debug_scope,
            )
        )

    return tuple(handler_ids)


def set_default_node_id(node_id: NodeId) -> None:
    """Tag every later record with ``node_id`` unless a context overrides it."""
    logger.configure(extra={"node_id": node_id})
