"""Typed results for individual browser automation steps."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from kleinanzeigen_session.exceptions import SelectorNotFoundError
from kleinanzeigen_session.utils.logging import get_logger


logger = get_logger(__name__)


class StepOutcome(str, Enum):
    SUCCESS = "success"
    TIMED_OUT = "timed_out"
    SELECTOR_MISSING = "selector_missing"


@dataclass
class StepResult:
    """Result of one awaited browser step."""

    name: str
    outcome: StepOutcome
    value: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is StepOutcome.SUCCESS


async def run_step(
    name: str,
    awaitable: Awaitable[Any],
    timeout: float | None = None,
) -> StepResult:
    """
    Await a browser step and classify how it ended.

    Timeouts and missing selectors become step outcomes. Any other exception
    propagates to the caller.
    """
    try:
        if timeout is not None:
            value = await asyncio.wait_for(awaitable, timeout=timeout)
        else:
            value = await awaitable
    except asyncio.TimeoutError:
        logger.warning("Step timed out", step=name)
        return StepResult(name, StepOutcome.TIMED_OUT, error="timeout")
    except SelectorNotFoundError as e:
        logger.debug("Step selector missing", step=name, selector=e.selector)
        return StepResult(name, StepOutcome.SELECTOR_MISSING, error=str(e))

    logger.debug("Step completed", step=name)
    return StepResult(name, StepOutcome.SUCCESS, value=value)
