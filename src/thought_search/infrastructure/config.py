"""Configuration dataclasses for the thought-search engine.

Each config is a frozen ``dataclass`` with a ``validate()`` method that
raises ``ValueError`` on invalid combinations.  Enum-typed fields accept
either the enum member or its string value; ``__post_init__`` coerces
strings so configs loaded from JSON behave exactly like hand-built ones.

The module also owns the category split policy used by generators and the
category-aware selector: :func:`split_count` hands out a total across
weighted categories with the largest-remainder method, so the per-category
counts always sum to the requested total.
"""

from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass, field, fields
from typing import Any

from thought_search.domain.enums import (
    EvaluationMethod,
    Origin,
    ProblemType,
    SearchAlgorithm,
    SelectionMethod,
)


# ===================================================================== #
#  Category ratio helpers                                                #
# ===================================================================== #

def parse_ratio(ratio: str) -> tuple[float, float]:
    """Parse an ``"A:B"`` ratio string into its two non-negative weights.

    Raises ``ValueError`` for malformed strings, negative parts, or a
    ratio whose parts are both zero.
    """
    parts = str(ratio).split(":")
    if len(parts) != 2:
        raise ValueError(f"category_ratio must look like 'A:B', got {ratio!r}")
    try:
        first, second = float(parts[0]), float(parts[1])
    except ValueError:
        raise ValueError(
            f"category_ratio parts must be numbers, got {ratio!r}"
        ) from None
    if first < 0 or second < 0 or math.isnan(first) or math.isnan(second):
        raise ValueError(f"category_ratio parts must be >= 0, got {ratio!r}")
    if first + second <= 0:
        raise ValueError(f"category_ratio must not be '0:0', got {ratio!r}")
    return first, second


def split_count(total: int, weights: tuple[float, ...] | list[float]) -> list[int]:
    """Split *total* across *weights* with the largest-remainder method.

    Every share is floored first; the units left over go to the shares
    with the largest fractional parts, earlier categories winning ties.
    The result always sums to *total*.

    >>> split_count(5, (5, 5))
    [3, 2]
    >>> split_count(5, (6, 4))
    [3, 2]
    """
    if total < 0:
        raise ValueError(f"total must be >= 0, got {total}")
    weight_sum = float(sum(weights))
    if weight_sum <= 0:
        raise ValueError("weights must have a positive sum")
    exact = [total * w / weight_sum for w in weights]
    counts = [int(math.floor(x)) for x in exact]
    remainder = total - sum(counts)
    order = sorted(
        range(len(exact)), key=lambda i: (-(exact[i] - counts[i]), i)
    )
    for i in order[:remainder]:
        counts[i] += 1
    return counts


# ===================================================================== #
#  Search Configuration                                                  #
# ===================================================================== #

@dataclass(frozen=True)
class SearchConfig:
    """Parameters governing one tree-of-thought search run.

    Attributes
    ----------
    n_generate:
        Thoughts requested per generator call.
    n_evaluate:
        Scoring samples (value) or rankings (vote) per evaluation.
    n_select:
        Frontier size kept after each selection; at most ``n_generate``.
    max_depth:
        Depth limit of the tree.
    steps:
        Number of breadth-first levels; ``None`` means ``max_depth``.
    algorithm:
        Breadth-first or depth-first traversal.
    evaluation_method:
        Independent value scoring or comparative voting.
    selection_method:
        Strategy reducing a scored batch to the next frontier.
    category_ratio:
        ``"A:B"`` proportion of practical to technical thoughts.
    confidence_threshold:
        Early-stop score in [0, 10]; ``0`` disables early stopping.
    cache_enabled, cache_ttl_seconds:
        Memoization of value scores; a ``None`` TTL never expires.
    cross_evaluation:
        Score each category's thoughts with the other category's scorer.
    problem_type:
        Drives the category preferences of category-aware selection.
    timeout_seconds:
        Limit applied to every external generator or scorer call.
    max_concurrency:
        Upper bound on concurrently running external calls.
    early_stop_evaluation:
        Cut sampling short once a thought's running mean meets the
        threshold, and skip the rest of the batch.
    temperature:
        Sampling temperature for the ``sample`` selector.
    diversity_weight:
        Weight of the diversity term in the ``hybrid`` selector.
    selection_threshold:
        Cut used by the ``threshold`` selector; ``None`` reuses
        ``confidence_threshold``.
    adaptive_percentile:
        When set, the ``threshold`` selector derives its cut from this
        percentile of the batch scores instead.
    dfs_single_branch:
        Depth-first variant that descends only into the best child.
    seed:
        Seed for the random source used by stochastic selectors.
    """

    n_generate: int = 5
    n_evaluate: int = 3
    n_select: int = 3
    max_depth: int = 3
    steps: int | None = None
    algorithm: SearchAlgorithm = SearchAlgorithm.BREADTH_FIRST
    evaluation_method: EvaluationMethod = EvaluationMethod.VALUE
    selection_method: SelectionMethod = SelectionMethod.GREEDY
    category_ratio: str = "5:5"
    confidence_threshold: float = 9.0
    cache_enabled: bool = True
    cache_ttl_seconds: float | None = 3600.0
    cross_evaluation: bool = True
    problem_type: ProblemType = ProblemType.CUSTOM
    timeout_seconds: float = 60.0
    max_concurrency: int = 4
    early_stop_evaluation: bool = False
    temperature: float = 0.7
    diversity_weight: float = 0.3
    selection_threshold: float | None = None
    adaptive_percentile: float | None = None
    dfs_single_branch: bool = False
    seed: int | None = None

    def __post_init__(self) -> None:
        # frozen=True prevents normal assignment; coerce enum strings here.
        for name, enum_cls in (
            ("algorithm", SearchAlgorithm),
            ("evaluation_method", EvaluationMethod),
            ("selection_method", SelectionMethod),
            ("problem_type", ProblemType),
        ):
            value = getattr(self, name)
            if not isinstance(value, enum_cls):
                try:
                    object.__setattr__(self, name, enum_cls(value))
                except ValueError:
                    raise ValueError(
                        f"{name} must be one of "
                        f"{[m.value for m in enum_cls]}, got {value!r}"
                    ) from None

    # -- derived values -------------------------------------------------------

    @property
    def effective_steps(self) -> int:
        """Breadth-first level count: ``min(steps, max_depth)``."""
        if self.steps is None:
            return self.max_depth
        return min(self.steps, self.max_depth)

    @property
    def early_stop_enabled(self) -> bool:
        return self.confidence_threshold > 0

    def category_weights(self) -> tuple[float, float]:
        return parse_ratio(self.category_ratio)

    def category_counts(self, total: int | None = None) -> dict[Origin, int]:
        """Per-origin thought counts for *total* (default ``n_generate``)."""
        count = self.n_generate if total is None else total
        practical, technical = split_count(count, self.category_weights())
        return {Origin.PRACTICAL: practical, Origin.TECHNICAL: technical}

    # -- validation -----------------------------------------------------------

    def validate(self) -> None:
        """Raise ``ValueError`` if any field is out of valid range."""
        if self.n_generate < 1:
            raise ValueError(f"n_generate must be >= 1, got {self.n_generate}")
        if self.n_evaluate < 1:
            raise ValueError(f"n_evaluate must be >= 1, got {self.n_evaluate}")
        if not 1 <= self.n_select <= self.n_generate:
            raise ValueError(
                f"n_select must be in [1, n_generate={self.n_generate}], "
                f"got {self.n_select}"
            )
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {self.max_depth}")
        if self.steps is not None and self.steps < 1:
            raise ValueError(f"steps must be >= 1, got {self.steps}")
        parse_ratio(self.category_ratio)
        if not 0.0 <= self.confidence_threshold <= 10.0:
            raise ValueError(
                "confidence_threshold must be in [0, 10], "
                f"got {self.confidence_threshold}"
            )
        if self.cache_ttl_seconds is not None and self.cache_ttl_seconds <= 0:
            raise ValueError(
                f"cache_ttl_seconds must be > 0, got {self.cache_ttl_seconds}"
            )
        if self.timeout_seconds <= 0:
            raise ValueError(
                f"timeout_seconds must be > 0, got {self.timeout_seconds}"
            )
        if self.max_concurrency < 1:
            raise ValueError(
                f"max_concurrency must be >= 1, got {self.max_concurrency}"
            )
        if self.temperature <= 0:
            raise ValueError(f"temperature must be > 0, got {self.temperature}")
        if not 0.0 <= self.diversity_weight <= 1.0:
            raise ValueError(
                f"diversity_weight must be in [0, 1], got {self.diversity_weight}"
            )
        if self.selection_threshold is not None and not (
            0.0 <= self.selection_threshold <= 10.0
        ):
            raise ValueError(
                "selection_threshold must be in [0, 10], "
                f"got {self.selection_threshold}"
            )
        if self.adaptive_percentile is not None and not (
            0.0 <= self.adaptive_percentile <= 100.0
        ):
            raise ValueError(
                "adaptive_percentile must be in [0, 100], "
                f"got {self.adaptive_percentile}"
            )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for name in ("algorithm", "evaluation_method", "selection_method", "problem_type"):
            data[name] = data[name].value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchConfig:
        valid_keys = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        cfg = cls(**filtered)
        cfg.validate()
        return cfg


DEFAULT_SEARCH_CONFIG = SearchConfig()


# ===================================================================== #
#  Task Configuration                                                    #
# ===================================================================== #

@dataclass(frozen=True)
class TaskConfig:
    """A problem type bundled with its step names and search defaults.

    Attributes
    ----------
    task_type:
        The problem type the preset targets.
    steps:
        Number of reasoning steps (tree levels) the task walks through.
    step_names:
        Human-readable label for each level, indexed by depth.
    search:
        Search parameters tuned for the task.
    """

    task_type: ProblemType = ProblemType.CUSTOM
    steps: int = 3
    step_names: tuple[str, ...] = ()
    search: SearchConfig = field(default_factory=SearchConfig)

    def __post_init__(self) -> None:
        if not isinstance(self.task_type, ProblemType):
            object.__setattr__(self, "task_type", ProblemType(self.task_type))
        object.__setattr__(self, "step_names", tuple(self.step_names))
        if isinstance(self.search, dict):
            object.__setattr__(self, "search", SearchConfig.from_dict(self.search))

    def step_name(self, depth: int) -> str:
        """Label for *depth*, falling back to ``"Step N"``."""
        if 0 <= depth < len(self.step_names):
            return self.step_names[depth]
        return f"Step {depth + 1}"

    def validate(self) -> None:
        if self.steps < 1:
            raise ValueError(f"steps must be >= 1, got {self.steps}")
        if self.step_names and len(self.step_names) != self.steps:
            raise ValueError(
                f"step_names has {len(self.step_names)} entries but steps "
                f"is {self.steps}"
            )
        self.search.validate()

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_type": self.task_type.value,
            "steps": self.steps,
            "step_names": list(self.step_names),
            "search": self.search.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaskConfig:
        valid_keys = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        cfg = cls(**filtered)
        cfg.validate()
        return cfg


TASK_PRESETS: dict[ProblemType, TaskConfig] = {
    ProblemType.DEBUG: TaskConfig(
        task_type=ProblemType.DEBUG,
        steps=4,
        step_names=(
            "Root cause analysis",
            "Verification approach",
            "Fix proposal",
            "Test plan",
        ),
        search=SearchConfig(
            max_depth=4,
            category_ratio="6:4",
            problem_type=ProblemType.DEBUG,
        ),
    ),
    ProblemType.REFACTOR: TaskConfig(
        task_type=ProblemType.REFACTOR,
        steps=3,
        step_names=("Code smell analysis", "Refactoring strategy", "Migration plan"),
        search=SearchConfig(
            category_ratio="5:5",
            problem_type=ProblemType.REFACTOR,
        ),
    ),
    ProblemType.DESIGN: TaskConfig(
        task_type=ProblemType.DESIGN,
        steps=3,
        step_names=("Requirements analysis", "Architecture options", "Trade-off decision"),
        search=SearchConfig(
            category_ratio="4:6",
            evaluation_method=EvaluationMethod.VOTE,
            problem_type=ProblemType.DESIGN,
        ),
    ),
    ProblemType.CUSTOM: TaskConfig(),
}


def get_task_config(task_type: ProblemType | str) -> TaskConfig:
    """Return the preset for *task_type*.  Raises ``ValueError`` if unknown."""
    return TASK_PRESETS[ProblemType(task_type)]


# ===================================================================== #
#  Unified config loader                                                 #
# ===================================================================== #

_CONFIG_MAP: dict[str, type] = {
    "search": SearchConfig,
    "task": TaskConfig,
}


def load_config_from_json(json_str: str) -> dict[str, Any]:
    """Parse a JSON string into a dict of typed config objects.

    The JSON is expected to be an object whose top-level keys correspond to
    config section names (``search``, ``task``).  Unknown sections are
    preserved as raw dicts.
    """
    raw = json.loads(json_str)
    if not isinstance(raw, dict):
        raise ValueError("Top-level JSON must be an object")
    result: dict[str, Any] = {}
    for section, data in raw.items():
        cls = _CONFIG_MAP.get(section)
        if cls is not None and isinstance(data, dict):
            result[section] = cls.from_dict(data)
        else:
            result[section] = data
    return result
