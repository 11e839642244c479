import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional


@dataclass(frozen=True)
class MinimizationMetrics:
    original_state_count: int
    minimized_state_count: int
    reduction_ratio: float
    class_sizes: Mapping[int, int] = field(default_factory=dict)
    elapsed_seconds: float = 0.0
    original_transition_count: int = 0
    minimized_transition_count: int = 0
    iterations: int = 0
    strategy: str = "refine"

    @property
    def equivalence_class_count(self) -> int:
        return len(self.class_sizes)

    @property
    def reduction_percentage(self) -> float:
        return (1.0 - self.reduction_ratio) * 100.0

    def to_dict(self) -> dict:
        return {
            "original_state_count": self.original_state_count,
            "minimized_state_count": self.minimized_state_count,
            "reduction_ratio": self.reduction_ratio,
            "reduction_percentage": self.reduction_percentage,
            "equivalence_class_count": self.equivalence_class_count,
            "class_sizes": {str(k): v for k, v in self.class_sizes.items()},
            "elapsed_seconds": self.elapsed_seconds,
            "original_transition_count": self.original_transition_count,
            "minimized_transition_count": self.minimized_transition_count,
            "iterations": self.iterations,
            "strategy": self.strategy,
        }


class MetricsReporter:
    """Times one minimize() run. Reads the automaton, never writes to it."""

    def __init__(self):
        self._started: Optional[float] = None
        self._original_states = 0
        self._original_transitions = 0
        self.last: Optional[MinimizationMetrics] = None

    def start(self, automaton) -> None:
        self._started = time.perf_counter()
        self._original_states = len(automaton.states)
        self._original_transitions = automaton.transition_count()

    def finish(
        self,
        automaton,
        partition: Dict[str, int],
        iterations: int = 0,
        strategy: str = "refine",
    ) -> MinimizationMetrics:
        if self._started is None:
            raise RuntimeError("MetricsReporter.finish() called before start()")
        elapsed = time.perf_counter() - self._started
        sizes: Dict[int, int] = {}
        for class_id in partition.values():
            sizes[class_id] = sizes.get(class_id, 0) + 1
        minimized = len(automaton.states)
        ratio = minimized / self._original_states if self._original_states else 1.0
        self.last = MinimizationMetrics(
            original_state_count=self._original_states,
            minimized_state_count=minimized,
            reduction_ratio=ratio,
            class_sizes=MappingProxyType(dict(sorted(sizes.items()))),
            elapsed_seconds=elapsed,
            original_transition_count=self._original_transitions,
            minimized_transition_count=automaton.transition_count(),
            iterations=iterations,
            strategy=strategy,
        )
        self._started = None
        return self.last
