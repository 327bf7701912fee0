from __future__ import annotations

from dataclasses import dataclass
from types import SimpleNamespace
from typing import Mapping, Optional

from .market import normalize_market_condition


_BOOLEAN_TRUE = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class EngineConfig:
    """Tuning knobs for the estimate learning engines.

    Assembled from environment variables and CLI options; engines receive it
    explicitly and never read the environment themselves.
    """

    min_data_points: int = 10
    rolling_window: int = 10
    trend_threshold: float = 0.1
    prediction_jitter: float = 0.1
    market_condition: str = "normal"
    gross_margin: float = 0.3
    history_limit: int = 10
    bias_window: int = 20
    bias_min_samples: int = 5
    random_seed: Optional[int] = None
    verbose: bool = False


def _to_int(value: object | None) -> Optional[int]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(float(text))
    except ValueError:
        return None


def _to_float(value: object | None) -> Optional[float]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _flag(value: object | None) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _BOOLEAN_TRUE


def _market(value: object | None, default: str) -> str:
    try:
        return normalize_market_condition(value, default=default)
    except ValueError:
        return default


def _namespace(cli_args: object | None) -> SimpleNamespace:
    if cli_args is None:
        return SimpleNamespace()
    if isinstance(cli_args, SimpleNamespace):
        return cli_args
    if hasattr(cli_args, "__dict__"):
        return SimpleNamespace(**{k: v for k, v in vars(cli_args).items()})
    return SimpleNamespace()


def _positive(value: Optional[int], default: int) -> int:
    if value is None or value < 1:
        return default
    return value


def load_config(env: Mapping[str, str], cli_args: object | None = None) -> EngineConfig:
    """Build an :class:`EngineConfig` from environment variables and CLI options."""

    defaults = EngineConfig()

    min_data_points = _positive(_to_int(env.get("BIDLEARN_MIN_DATA_POINTS")), defaults.min_data_points)
    rolling_window = _positive(_to_int(env.get("BIDLEARN_ROLLING_WINDOW")), defaults.rolling_window)
    trend_threshold = _to_float(env.get("BIDLEARN_TREND_THRESHOLD"))
    if trend_threshold is None:
        trend_threshold = defaults.trend_threshold
    prediction_jitter = _to_float(env.get("BIDLEARN_PREDICTION_JITTER"))
    if prediction_jitter is None or prediction_jitter < 0:
        prediction_jitter = defaults.prediction_jitter
    market_condition = _market(env.get("BIDLEARN_MARKET_CONDITION"), defaults.market_condition)
    gross_margin = _to_float(env.get("BIDLEARN_GROSS_MARGIN"))
    if gross_margin is None:
        gross_margin = defaults.gross_margin
    history_limit = _positive(_to_int(env.get("BIDLEARN_HISTORY_LIMIT")), defaults.history_limit)
    bias_window = _positive(_to_int(env.get("BIDLEARN_BIAS_WINDOW")), defaults.bias_window)
    bias_min_samples = _positive(_to_int(env.get("BIDLEARN_BIAS_MIN_SAMPLES")), defaults.bias_min_samples)
    random_seed = _to_int(env.get("BIDLEARN_RANDOM_SEED"))
    verbose = _flag(env.get("BIDLEARN_VERBOSE"))

    cli_ns = _namespace(cli_args)
    if getattr(cli_ns, "min_data_points", None) is not None:
        min_data_points = max(1, int(cli_ns.min_data_points))
    if getattr(cli_ns, "market_condition", None):
        market_condition = _market(cli_ns.market_condition, market_condition)
    if getattr(cli_ns, "seed", None) is not None:
        random_seed = int(cli_ns.seed)
    if getattr(cli_ns, "no_jitter", False):
        prediction_jitter = 0.0
    if getattr(cli_ns, "verbose", False):
        verbose = True

    return EngineConfig(
        min_data_points=min_data_points,
        rolling_window=rolling_window,
        trend_threshold=trend_threshold,
        prediction_jitter=prediction_jitter,
        market_condition=market_condition,
        gross_margin=gross_margin,
        history_limit=history_limit,
        bias_window=bias_window,
        bias_min_samples=bias_min_samples,
        random_seed=random_seed,
        verbose=verbose,
    )


__all__ = ["EngineConfig", "load_config"]
