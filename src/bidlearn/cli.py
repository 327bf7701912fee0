import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence, Tuple

from dotenv import load_dotenv

from .config import EngineConfig
from .config import load_config as load_runtime_config
from .contractor_analysis import ContractorMLEngine, InsufficientDataError
from .history_io import (
    load_deal_history,
    load_estimates,
    load_learning_data,
    load_price_biases,
)
from .models import SEASONS, OptimizeEstimateRequest, as_dict
from .optimization import learn_price_biases, optimize_estimate, summarize_estimates
from .reporting import make_analysis_text, make_optimization_text, make_summary_text
from .seasonal import SeasonalAdjustmentEngine

BASE_DIR = Path(__file__).resolve().parents[2]

logger = logging.getLogger(__name__)

Outcome = Tuple[object, Optional[str]]


def _path(value: str) -> Path:
    return Path(value).expanduser().resolve()


def _cmd_analyze(args: argparse.Namespace, cfg: EngineConfig) -> Outcome:
    records = load_learning_data(args.history)
    engine = ContractorMLEngine(cfg)
    logger.info("[analyze] %s :: %s records loaded", args.contractor, len(records))
    if args.full:
        result = engine.perform_ml_analysis(args.contractor, records)
        return as_dict(result), make_analysis_text(result)
    stats = engine.analyze_contractor_performance(args.contractor, records)
    return as_dict(stats), make_summary_text(stats)


def _cmd_seasonal(args: argparse.Namespace, cfg: EngineConfig) -> Outcome:
    engine = SeasonalAdjustmentEngine()
    history = load_learning_data(args.history) if args.history else None
    adjustment = engine.calculate_seasonal_adjustment(args.season, args.project_type, args.market, history)
    payload: Dict[str, object] = {
        "season": args.season,
        "project_type": args.project_type,
        "market_condition": args.market,
        "adjustment": adjustment,
    }
    if history:
        detailed = engine.analyze_seasonal_performance_detailed(history)
        payload["seasons"] = {season: as_dict(detail) for season, detail in detailed.items()}
    return payload, f"Seasonal adjustment for {args.project_type} in {args.season} ({args.market}): x{adjustment:.3f}\n"


def _cmd_timing(args: argparse.Namespace, cfg: EngineConfig) -> Outcome:
    engine = SeasonalAdjustmentEngine()
    result = engine.recommend_optimal_timing(args.project_type, args.season, load_learning_data(args.history))
    text = f"Best month: {result.optimal_month} (+{result.win_rate_improvement:.1%} win rate)\n" + "".join(
        f" - {reason}\n" for reason in result.reasoning
    )
    return as_dict(result), text


def _cmd_quarter(args: argparse.Namespace, cfg: EngineConfig) -> Outcome:
    engine = SeasonalAdjustmentEngine()
    result = engine.predict_quarterly_demand(load_learning_data(args.history), args.quarter)
    text = (
        f"Q{args.quarter} demand change: {result.predicted_demand_change:+.3f} "
        f"(confidence {result.confidence_level:.2f})\n"
        f"Risks: {', '.join(result.risk_factors) or '-'}\n"
        f"Opportunities: {', '.join(result.opportunities) or '-'}\n"
    )
    return as_dict(result), text


def _cmd_optimize(args: argparse.Namespace, cfg: EngineConfig) -> Outcome:
    request = OptimizeEstimateRequest(
        estimated_amount=args.amount,
        project_id=args.project_id,
        client_id=args.client_id,
        urgency_level=args.urgency,
        competition_level=args.competition,
        project_scale=args.scale,
    )
    biases = load_price_biases(args.biases, args.client_id) if args.biases else []
    deals = load_deal_history(args.deals, args.client_id) if args.deals else []
    result = optimize_estimate(request, biases, deals, cfg)
    return as_dict(result), make_optimization_text(result)


def _cmd_learn_biases(args: argparse.Namespace, cfg: EngineConfig) -> Outcome:
    deals = load_deal_history(args.deals, args.client_id)
    biases = learn_price_biases(args.client_id, deals, cfg)
    text = "".join(f"{b.factor_type}: {b.factor_value:+.2f} (confidence {b.confidence:.2f}, n={b.sample_size})\n" for b in biases)
    return [as_dict(b) for b in biases], text or "Not enough deals to learn biases.\n"


def _cmd_stats(args: argparse.Namespace, cfg: EngineConfig) -> Outcome:
    result = summarize_estimates(load_estimates(args.estimates))
    text = (
        f"Estimates: {result.total_estimates} (approved {result.accepted_estimates}, "
        f"rejected {result.rejected_estimates}, pending {result.pending_estimates})\n"
        f"Total value: {result.total_value:,.0f} | accepted value: {result.accepted_value:,.0f}\n"
    )
    return as_dict(result), text


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--text", action="store_true", help="Print a readable report instead of JSON")
    common.add_argument("-v", "--verbose", action="store_true", help="Increase logging verbosity")

    parser = argparse.ArgumentParser(description="Learn bid pricing adjustments from contractor history")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", parents=[common], help="Analyze one contractor's bid history")
    analyze.add_argument("--history", type=_path, required=True, help="Bid history CSV/XLSX/JSON")
    analyze.add_argument("--contractor", required=True, help="Contractor name to analyze")
    analyze.add_argument("--full", action="store_true", help="Include prediction, risk and suggestions")
    analyze.add_argument("--min-data-points", type=int, help="Override minimum records per contractor")
    analyze.add_argument("--market-condition", choices=["good", "normal", "poor"], help="Current market condition")
    analyze.add_argument("--seed", type=int, help="Seed for the prediction jitter")
    analyze.add_argument("--no-jitter", action="store_true", help="Disable the prediction jitter")
    analyze.set_defaults(handler=_cmd_analyze)

    seasonal = sub.add_parser("seasonal", parents=[common], help="Seasonal price multiplier")
    seasonal.add_argument("--season", choices=SEASONS, required=True)
    seasonal.add_argument("--project-type", required=True)
    seasonal.add_argument("--market", choices=["good", "normal", "poor"], default="normal")
    seasonal.add_argument("--history", type=_path, help="Optional bid history to blend in")
    seasonal.set_defaults(handler=_cmd_seasonal)

    timing = sub.add_parser("timing", parents=[common], help="Best month to bid within a season")
    timing.add_argument("--history", type=_path, required=True)
    timing.add_argument("--season", choices=SEASONS, required=True)
    timing.add_argument("--project-type", required=True)
    timing.set_defaults(handler=_cmd_timing)

    quarter = sub.add_parser("quarter", parents=[common], help="Quarterly demand outlook")
    quarter.add_argument("--history", type=_path, required=True)
    quarter.add_argument("--quarter", type=int, choices=[1, 2, 3, 4], required=True)
    quarter.set_defaults(handler=_cmd_quarter)

    optimize = sub.add_parser("optimize", parents=[common], help="Optimize a single estimate")
    optimize.add_argument("--amount", type=float, required=True, help="Estimated amount")
    optimize.add_argument("--client-id", help="Client whose biases and deals apply")
    optimize.add_argument("--project-id")
    optimize.add_argument("--urgency", choices=["low", "medium", "high"])
    optimize.add_argument("--competition", choices=["low", "medium", "high"])
    optimize.add_argument("--scale", choices=["small", "medium", "large"])
    optimize.add_argument("--biases", type=_path, help="Stored price bias table")
    optimize.add_argument("--deals", type=_path, help="Resolved deal history table")
    optimize.set_defaults(handler=_cmd_optimize)

    learn = sub.add_parser("learn-biases", parents=[common], help="Learn price biases from resolved deals")
    learn.add_argument("--deals", type=_path, required=True)
    learn.add_argument("--client-id", required=True)
    learn.set_defaults(handler=_cmd_learn_biases)

    summary = sub.add_parser("stats", parents=[common], help="Summarize an estimate portfolio")
    summary.add_argument("--estimates", type=_path, required=True)
    summary.set_defaults(handler=_cmd_stats)

    return parser.parse_args(argv)


def run(args: argparse.Namespace, runtime_config: EngineConfig) -> int:
    handler: Callable[[argparse.Namespace, EngineConfig], Outcome] = args.handler
    payload, text = handler(args, runtime_config)
    if args.text and text is not None:
        sys.stdout.write(text)
    else:
        sys.stdout.write(json.dumps(payload, indent=2, ensure_ascii=False) + "\n")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv(BASE_DIR / ".env")
    args = parse_args(argv)
    runtime_cfg = load_runtime_config(os.environ, args)
    log_level = logging.DEBUG if runtime_cfg.verbose else logging.INFO
    logging.basicConfig(level=log_level, format="%(message)s")
    try:
        return run(args, runtime_cfg)
    except InsufficientDataError as exc:
        logger.warning("Not enough history: %s", exc)
        return 2
    except Exception:  # pragma: no cover
        logger.exception("Fatal error during estimate analysis")
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
