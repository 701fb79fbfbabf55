"""Workshop Orchestrator – AutoML + Local Explanation Walkthrough

This module runs the workshop pipeline end to end:

    dataset -> train/test split -> single gradient-boosting model
            -> budgeted automated search (leaderboard + ensembles)
            -> test-set performance -> local surrogate explanation

Each stage hands an explicit object (partition, model handle, leaderboard,
report, explanation) to the next one.  Engine glue lives in ``engines/``;
evaluation, explanation and reporting live in ``components/``.
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import random
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from components.errors import AutoMLError
from components.evaluation import model_performance
from components.explainer import LocalSurrogateExplainer
from components.records import Dataset, Explanation, ModelHandle, Partition, PerformanceReport
from components.visualize import (
    console,
    plot_features,
    render_explanation,
    render_leaderboard,
    render_report,
)
from engines.autogluon_wrapper import AutoGluonEngine, SearchResult
from engines.session import ComputeSession
from scripts.config import (
    BOSTON_TARGET,
    DEFAULT_ALGORITHM,
    EXPLAINED_ROW,
    RunConfig,
    load_config,
)
from scripts.data_loader import load_boston_housing, load_data, split_frame

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Global Logging Setup
# ---------------------------------------------------------------------------
# Set base logging level; can be overridden by AUTOML_VERBOSE
logging_level = logging.INFO
if "AUTOML_VERBOSE" in os.environ:
    logging_level = logging.DEBUG

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
logger = logging.getLogger(__name__)


def _configure_logging(run_dir: Path) -> None:
    """Log to stdout and to ``run.log`` inside *run_dir*."""
    logging.basicConfig(
        level=logging_level,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(run_dir / "run.log", mode="a"),
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Optional Logstash integration for centralized logging
    if os.getenv("LOGSTASH_HOST"):
        try:
            from logstash_async.handler import AsynchronousLogstashHandler
            from logstash_async.formatter import LogstashFormatter

            ls_host = os.environ.get("LOGSTASH_HOST")
            ls_port = int(os.environ.get("LOGSTASH_PORT", "5959"))
            ls_handler = AsynchronousLogstashHandler(ls_host, ls_port, database_path=None)
            ls_handler.setFormatter(LogstashFormatter())
            logging.getLogger().addHandler(ls_handler)
            logger.info("Logging to Logstash at %s:%s", ls_host, ls_port)
        except (ImportError, OSError, ValueError) as exc:
            logger.warning("Could not configure Logstash handler: %s", exc)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

@dataclass
class WorkshopResult:
    """Every artefact of one workshop run.

    Model handles stay usable only while the session that produced them is
    running; reports and explanations are plain values.
    """

    config: RunConfig
    dataset: Dataset
    partition: Partition
    single_model: ModelHandle
    single_report: PerformanceReport
    search: SearchResult
    leader_report: PerformanceReport
    explanations: List[Explanation]
    duration_seconds: float = 0.0
    export_path: Optional[Path] = None
    plot_path: Optional[Path] = None
    engine_runs: Dict[str, Any] = field(default_factory=dict)

    @property
    def leader(self) -> ModelHandle:
        return self.search.leader


def run_workshop(
    config: RunConfig | None = None,
    *,
    dataset: Dataset | None = None,
    run_dir: Path | str = "05_outputs",
    session: ComputeSession | None = None,
    explained_row: int = EXPLAINED_ROW,
    export_dir: Path | str | None = None,
    plot: bool = False,
    keep_workspace: bool = False,
) -> WorkshopResult:
    """Run the whole walkthrough and write ``metrics.json`` to *run_dir*.

    Parameters
    ----------
    config
        Recognised options; defaults to :class:`RunConfig()`.
    dataset
        Table to model. The Boston housing data is fetched when omitted.
    run_dir
        Directory for ``metrics.json``, the plot and the session workspace.
    session
        A started session to reuse. When omitted one is started here and
        stopped (releasing every model) before returning.
    explained_row
        Position of the explained row inside the test partition.
    export_dir
        When given, the leader is exported there.
    plot
        Write ``explanation.png`` to *run_dir*.
    keep_workspace
        Keep the session workspace on disk after the run.
    """
    config = config or RunConfig()
    run_dir = Path(run_dir)
    run_dir.mkdir(parents=True, exist_ok=True)
    start_time = time.perf_counter()

    # Reproducibility – seed global RNGs before anything samples
    random.seed(config.seed)
    np.random.seed(config.seed)

    if dataset is None:
        dataset = load_boston_housing()
    partition = split_frame(dataset, ratio=config.split_ratio, seed=config.seed)
    if not 0 <= explained_row < len(partition.test):
        raise AutoMLError(
            f"explained_row={explained_row} outside the test partition ({len(partition.test)} rows)"
        )
    features, target = dataset.features, dataset.target

    own_session = session is None
    if own_session:
        session = ComputeSession(workspace=run_dir / "session", keep_workspace=keep_workspace).start()

    try:
        engine = AutoGluonEngine(session, metric=config.ranking_metric)

        # Stage 1 – one gradient-boosting model at default hyper-parameters
        console.log(f"[bold]Training a single {DEFAULT_ALGORITHM} model[/bold]")
        single = engine.train(
            features, target, partition.train, model_id="single_gbm", seed=config.seed
        )
        single_report = model_performance(single, partition.test)
        render_report(single_report)
        engine_runs = {"train": engine.run_info}

        # Stage 2 – budgeted automated search
        console.log(
            f"[bold]Automated search[/bold]: {config.training_time_budget_secs}s / "
            f"{config.max_models} models, {config.cv_folds}-fold CV, ranked by {config.ranking_metric}"
        )
        search = engine.search(
            features,
            target,
            partition.train,
            max_runtime_secs=config.training_time_budget_secs,
            max_models=config.max_models,
            cv_folds=config.cv_folds,
            seed=config.seed,
            exclude=config.excluded_algorithms,
        )
        engine_runs["search"] = engine.run_info
        render_leaderboard(search.leaderboard)

        # Stage 3 – leader on the held-out partition
        leader_report = model_performance(search.leader, partition.test)
        render_report(leader_report)

        # Stage 4 – explain one test row against the training distribution
        explainer = LocalSurrogateExplainer(partition.train, search.leader, seed=config.seed)
        explanations = explainer.explain(
            partition.test.iloc[[explained_row]],
            n_permutations=config.permutation_count,
            feature_select=config.feature_select_strategy,
            n_features=config.max_explained_features,
        )
        explanations = [e.sort_by("weight", descending=True) for e in explanations]
        for explanation in explanations:
            render_explanation(explanation)

        export_path = engine.export(search.leader, export_dir) if export_dir is not None else None
        plot_path = plot_features(explanations, run_dir / "explanation.png") if plot else None
    finally:
        if own_session:
            session.stop()

    result = WorkshopResult(
        config=config,
        dataset=dataset,
        partition=partition,
        single_model=single,
        single_report=single_report,
        search=search,
        leader_report=leader_report,
        explanations=explanations,
        duration_seconds=time.perf_counter() - start_time,
        export_path=export_path,
        plot_path=plot_path,
        engine_runs=engine_runs,
    )
    _write_metrics(run_dir, result)
    return result


def _write_metrics(run_dir: Path, result: WorkshopResult) -> Path:
    """Write ``metrics.json`` describing the run, its models and the explanation."""
    metrics_data = {
        "run_meta": {
            "timestamp_utc": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "version": __version__,
            "config": result.config.to_dict(),
            "total_duration_seconds": result.duration_seconds,
            "engine_runs": result.engine_runs,
        },
        "dataset": {
            "name": result.dataset.name,
            "n_rows": result.dataset.n_rows,
            "n_features": len(result.dataset.features),
            "target": result.dataset.target,
            "train_rows": result.partition.sizes[0],
            "test_rows": result.partition.sizes[1],
        },
        "single_model": {
            **result.single_model.describe(),
            "test_metrics": result.single_report.to_dict(),
        },
        "search": result.search.summary(),
        "leaderboard": result.search.leaderboard.to_frame().to_dict("records"),
        "leader": {
            **result.leader.describe(),
            "test_metrics": result.leader_report.to_dict(),
        },
        "explanations": [e.to_frame().to_dict("records") for e in result.explanations],
        "artefact_paths": {
            "export": str(result.export_path) if result.export_path else None,
            "plot": str(result.plot_path) if result.plot_path else None,
        },
    }
    metrics_json_path = run_dir / "metrics.json"
    with open(metrics_json_path, "w") as f:
        json.dump(metrics_data, f, indent=2, default=str)
    logger.info("Metrics saved to %s", metrics_json_path)
    return metrics_json_path


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def _cli() -> None:
    """Parses command-line arguments and runs the workshop pipeline."""
    parser = argparse.ArgumentParser(
        description="\nWorkshop Orchestrator – AutoML + Local Explanation Walkthrough",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "--data",
        type=str,
        default=None,
        help="Path to a CSV holding features and target (default: Boston housing from OpenML)",
    )
    parser.add_argument(
        "--target",
        type=str,
        default=BOSTON_TARGET,
        help=f"Target column name (default: {BOSTON_TARGET})",
    )
    parser.add_argument("--config", type=str, default=None, help="JSON file of configuration options")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--split-ratio", type=float, default=None, help="Training fraction of the split")
    parser.add_argument(
        "--time", type=int, default=None, help="Wall-clock budget of the automated search in seconds"
    )
    parser.add_argument("--max-models", type=int, default=None, help="Maximum number of base candidates")
    parser.add_argument("--cv-folds", type=int, default=None, help="Cross-validation folds (0 = holdout)")
    parser.add_argument("--metric", type=str, default=None, help="Ranking metric (rmse, mse, mae, r2, ...)")
    parser.add_argument(
        "--exclude", nargs="*", default=None, help="Algorithm families to leave out of the search"
    )
    parser.add_argument("--permutations", type=int, default=None, help="Permutation count of the explainer")
    parser.add_argument("--feature-select", type=str, default=None, help="Feature selection strategy")
    parser.add_argument("--n-features", type=int, default=None, help="Maximum number of explained features")
    parser.add_argument("--row", type=int, default=EXPLAINED_ROW, help="Test-partition row to explain")
    parser.add_argument("--export-dir", type=str, default=None, help="Export the leader to this directory")
    parser.add_argument("--plot", action="store_true", help="Write explanation.png")
    parser.add_argument("--keep-workspace", action="store_true", help="Keep the session workspace on disk")
    parser.add_argument("--output-dir", type=str, default="05_outputs", help="Root directory for run artefacts")

    args = parser.parse_args()

    # Define unique run directory for artifacts
    timestamp_str = datetime.now().strftime("%Y%m%d-%H%M%S")
    dataset_name = Path(args.data).stem if args.data else "boston"
    run_dir = Path(args.output_dir) / dataset_name / timestamp_str
    run_dir.mkdir(parents=True, exist_ok=True)
    _configure_logging(run_dir)

    try:
        base = load_config(args.config) if args.config else RunConfig()
        config = base.with_overrides(
            seed=args.seed,
            split_ratio=args.split_ratio,
            training_time_budget_secs=args.time,
            max_models=args.max_models,
            cv_folds=args.cv_folds,
            ranking_metric=args.metric,
            excluded_algorithms=args.exclude,
            permutation_count=args.permutations,
            feature_select_strategy=args.feature_select,
            max_explained_features=args.n_features,
        )
    except (AutoMLError, FileNotFoundError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    console.log("[bold green]Starting Workshop Run[/bold green]")
    console.log(f"  Dataset: {args.data or 'boston (OpenML)'}")
    console.log(f"  Target: {args.target}")
    console.log(f"  Search budget: {config.training_time_budget_secs}s / {config.max_models} models")
    console.log(f"  Ranking metric: {config.ranking_metric}")
    console.log(f"  Artifacts Directory: {run_dir}")

    # Load data
    try:
        dataset = load_data(args.data, args.target) if args.data else load_boston_housing()
        logger.info(f"Data loaded successfully: {dataset}")
    except Exception as e:
        logger.error(f"Failed to load data: {e}", exc_info=True)
        sys.exit(1)  # Terminate pipeline immediately

    try:
        result = run_workshop(
            config,
            dataset=dataset,
            run_dir=run_dir,
            explained_row=args.row,
            export_dir=args.export_dir,
            plot=args.plot,
            keep_workspace=args.keep_workspace,
        )
    except (AutoMLError, ConnectionError) as e:
        logger.error(f"Workshop run failed: {e}", exc_info=True)
        sys.exit(1)  # Terminate pipeline immediately

    logger.info(
        f"Leader {result.leader.model_id}: test RMSE={result.leader_report['rmse']:.4f}, "
        f"R²={result.leader_report['r2']:.4f}"
    )
    console.log("[bold green]Workshop Run Completed[/bold green]")
    console.save_text(str(run_dir / "console.log"))


if __name__ == "__main__":
    _cli()
