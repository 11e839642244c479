from automin.automaton import Automaton, Lifecycle, State
from automin.config import MinimizerConfig, load_config
from automin.errors import (
    AutomatonError,
    MalformedAutomatonError,
    NoCurrentStateError,
    OperationOnUnknownStateError,
    StateLimitExceededError,
)
from automin.merger import StateMerger
from automin.metrics import MetricsReporter, MinimizationMetrics
from automin.partition import (
    EquivalenceClass,
    EquivalencePartitioner,
    by_accepting,
    by_metadata,
)
from automin.registry import (
    Behavior,
    BehaviorKind,
    BehaviorRegistry,
    RecoveryAction,
    RecoveryKind,
)

__version__ = "0.1.0"
