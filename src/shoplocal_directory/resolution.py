"""Ordered fallback resolution.

Several values are obtained by trying sources in a fixed order, e.g. regions
come from the taxonomy endpoint, else from the fetched places, else from a
static list.  A strategy returns a value, or ``None`` (or raises one of the
tolerated exceptions) to hand over to the next one.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Strategy = Tuple[str, Callable[[], Optional[T]]]


def resolve_first(
    strategies: Sequence[Strategy],
    tolerate: Tuple[Type[BaseException], ...] = (),
) -> Tuple[Optional[str], Optional[T]]:
    """Return ``(name, value)`` of the first strategy yielding a value.

    Empty collections count as "no value".  ``(None, None)`` is returned when
    every strategy comes up empty.
    """

    for name, strategy in strategies:
        try:
            value = strategy()
        except tolerate as exc:
            logger.debug("Strategy %s failed: %s", name, exc)
            continue
        if value is None:
            continue
        if isinstance(value, (list, tuple, dict, set)) and not value:
            continue
        logger.debug("Resolved using strategy %s", name)
        return name, value
    return None, None
