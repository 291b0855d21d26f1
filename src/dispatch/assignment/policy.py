"""Agent selection policies.

Selection is deliberately naive (uniform random for single assignments,
rotation within a sweep). Location is tracked on agents but not used here;
a geo-aware policy only needs to implement ``choose``.
"""

import random
from abc import ABC, abstractmethod


class SelectionPolicy(ABC):
    @abstractmethod
    def choose(self, order, candidates: list):
        """Pick one agent from ``candidates`` (never empty) for ``order``."""
        ...


class RandomSelection(SelectionPolicy):
    """Uniform choice among the eligible agents."""

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.SystemRandom()

    def choose(self, order, candidates: list):
        return self.rng.choice(candidates)


class RoundRobinRotation:
    """Hands out agents in a fixed cycle; lives for exactly one sweep.

    An agent that fails to bind is dropped from the rotation so the next
    order moves on to the following agent.
    """

    def __init__(self, agents: list):
        self._queue = list(agents)

    def __bool__(self) -> bool:
        return bool(self._queue)

    def __len__(self) -> int:
        return len(self._queue)

    def next(self):
        agent = self._queue.pop(0)
        self._queue.append(agent)
        return agent

    def discard(self, agent) -> None:
        self._queue = [a for a in self._queue if str(a.id) != str(agent.id)]
