"""Identifier policies for generated employee and office ids.

Ids have the form ``<code>-<number>`` where ``code`` is the role or
office-type code. A directory session owns one policy, so every builder
working on that directory draws from the same counters. The sequential
policy never repeats within one instance; the random policy draws from
``[0, upper_bound]`` and relies on the builder's bounded retry when the
store reports a collision.
"""

from __future__ import annotations

import random
from collections import defaultdict
from itertools import count
from typing import Protocol
from typing import runtime_checkable

from dirgraph.config import IdentifierConfig


@runtime_checkable
class IdentifierPolicy(Protocol):
    """Produces candidate identifiers for a role/type code."""

    def generate(self, code: str) -> str: ...


class SequentialIdentifierPolicy(IdentifierPolicy):
    """Monotonic counter per code: ``sde-1``, ``sde-2``, ..."""

    def __init__(self, *, start: int = 1) -> None:
        self._counters: defaultdict[str, count] = defaultdict(lambda: count(start))

    def generate(self, code: str) -> str:
        return f"{code}-{next(self._counters[code])}"


class RandomIdentifierPolicy(IdentifierPolicy):
    """Random non-negative suffix in ``[0, upper_bound]``."""

    def __init__(self, *, upper_bound: int = 99999, rng: random.Random | None = None) -> None:
        if upper_bound < 0:
            msg = f"upper_bound must be non-negative, got {upper_bound}"
            raise ValueError(msg)
        self._upper_bound = upper_bound
        self._rng = rng or random.Random()

    def generate(self, code: str) -> str:
        return f"{code}-{self._rng.randint(0, self._upper_bound)}"


def build_identifier_policy(config: IdentifierConfig) -> IdentifierPolicy:
    """Build the identifier policy selected in *config*."""
    strategy = config.strategy.strip().lower()
    if strategy == "sequential":
        return SequentialIdentifierPolicy()
    if strategy == "random":
        return RandomIdentifierPolicy(upper_bound=config.random_upper_bound)
    msg = f"Unsupported identifier strategy: {config.strategy}"
    raise ValueError(msg)
