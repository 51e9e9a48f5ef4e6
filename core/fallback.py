"""Ordered provider chain: try each source in turn, stop at the first success."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")

LOGGER = logging.getLogger(__name__)

Attempt = Tuple[str, Callable[[], Awaitable[Optional[T]]]]


def _truthy(value: object) -> bool:
    return bool(value)


async def first_success(
    attempts: Sequence[Attempt],
    accept: Callable[[T], bool] = _truthy,
    failures: Optional[List[str]] = None,
) -> Optional[T]:
    """Run ``attempts`` in order and return the first accepted result.

    An attempt that raises or returns a value rejected by ``accept`` hands
    over to the next one. ``None`` is returned once all are exhausted; the
    names of attempts that raised are appended to ``failures`` when given.
    """

    for name, attempt in attempts:
        try:
            result = await attempt()
        except Exception as exc:
            LOGGER.warning("Source %s failed: %s", name, exc)
            if failures is not None:
                failures.append(name)
            continue
        if result is not None and accept(result):
            return result
        LOGGER.debug("Source %s returned nothing usable", name)
    return None


__all__ = ["Attempt", "first_success"]
