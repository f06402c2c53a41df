"""Success-or-failure chaining for the rotation pipeline.

A stage is a ``(name, fn)`` pair where ``fn`` takes the run context and
returns the (possibly updated) context.  :func:`run_stages` threads the context
through each stage in order and stops at the first one that raises a
:class:`~badge_rotator.errors.BadgeRotatorError`.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Generic, Sequence, Tuple, TypeVar, Union

from badge_rotator.errors import BadgeRotatorError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Stage = Tuple[str, Callable[[T], T]]


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T


@dataclass(frozen=True)
class Failure:
    stage: str
    error: BadgeRotatorError

    @property
    def message(self) -> str:
        return f"{self.stage} failed: {self.error.message}"


Result = Union[Success[T], Failure]


def attempt(name: str, fn: Callable[[T], T], value: T) -> Result:
    """Run one stage, turning a pipeline error into a :class:`Failure`."""
    try:
        return Success(fn(value))
    except BadgeRotatorError as exc:
        logger.error("Stage %s failed: %s", name, exc.message)
        return Failure(stage=name, error=exc)


def run_stages(stages: Sequence[Stage], initial: T) -> Result:
    result: Result = Success(initial)
    for name, fn in stages:
        if isinstance(result, Failure):
            break
        logger.info("Stage %s starting", name)
        result = attempt(name, fn, result.value)
    return result
