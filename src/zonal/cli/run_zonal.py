"""Core zonal pipeline execution logic.

This module contains the actual pipeline runner, separated from argument parsing.
Scripts are thin wrappers; this is the real implementation.
"""

import sys
import json
import logging
import argparse
import importlib.util
from pathlib import Path
from typing import Optional, Dict, Any, List

from zonal.contracts.failure import ZonalError
from zonal.core.result_table import ResultTable
from zonal.pipeline.orchestrator import ZonalPipeline
from zonal.schemas import resolve_config, ParamConfig, UserConfig, CLIConfig


logger = logging.getLogger(__name__)


def load_user_config_dict(config_path: str) -> dict:
    """Execute a user config file and return its ``CONFIG`` dict, unvalidated.

    ``CONFIG`` itself is preferred; otherwise the first dict whose name
    starts with ``CONFIG`` (``CONFIG_NDVI`` and the like) is used.

    Raises
    ------
    FileNotFoundError
        If ``config_path`` does not exist.
    ValueError
        If the file defines no ``CONFIG`` dict.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    module_spec = importlib.util.spec_from_file_location(f"zonal_user_config_{path.stem}", path)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)

    # "CONFIG" sorts ahead of every "CONFIG_*" name
    for name in sorted(n for n in vars(module) if n.startswith("CONFIG")):
        candidate = getattr(module, name)
        if isinstance(candidate, dict):
            return candidate

    raise ValueError(f"No CONFIG dict found in {path}")


def run_zonal_pipeline(
    user_config_path: Optional[str] = None,
    cli_args: Optional[Dict[str, Any]] = None,
    verbose: bool = False
) -> ResultTable:
    """Execute the zone-value aggregation pipeline.

    This is the core pipeline execution function. It:
    1. Loads and resolves configuration (Param < User < CLI)
    2. Instantiates the pipeline orchestrator
    3. Runs it to completion and writes the output, if one is configured

    Parameters
    ----------
    user_config_path : str, optional
        Path to user config file (Python file with CONFIG dict).

    cli_args : dict, optional
        CLI argument overrides. Keys: zones, field, output, output_format,
        statistics, predicate, distance, tie_break, zone_id_field,
        max_workers, log_level. All optional.

    verbose : bool, optional
        If True, enable DEBUG logging and print full resolved config.

    Returns
    -------
    ResultTable
        One row per zone.

    Raises
    ------
    FileNotFoundError
        If user_config_path does not exist.
    ValueError
        If configuration validation fails.
    ZonalError
        Input problems (format, CRS, timeout) or cancellation.

    Examples
    --------
    Run with CLI arguments only::

        run_zonal_pipeline(cli_args={"zones": "districts.geojson", "field": "ndvi.nc"})

    Run with a user config and an output override::

        run_zonal_pipeline(
            "config/my_config.py",
            cli_args={"output": "ndvi_by_district.csv"},
        )
    """
    param_cfg = ParamConfig()  # Expert defaults

    user_cfg_dict = load_user_config_dict(user_config_path) if user_config_path else {}
    user_cfg = UserConfig.model_validate(user_cfg_dict)

    cli_args = dict(cli_args or {})
    if verbose and "log_level" not in cli_args:
        cli_args["log_level"] = "DEBUG"

    # Filter None values
    cli_dict = {k: v for k, v in cli_args.items() if v is not None}
    cli_cfg = CLIConfig.model_validate(cli_dict) if cli_dict else CLIConfig()

    # Resolve to internal config (Param < User < CLI)
    config = resolve_config(param_cfg, user_cfg, cli_cfg)

    print(f"\n{'='*60}")
    print("Zonal Aggregation Pipeline")
    print('='*60)
    print(f"Config:     {user_config_path or '(defaults)'}")
    print(f"Zones:      {config.zones}")
    print(f"Field:      {config.field}")
    print(f"Predicate:  {config.predicate.mode} (tie-break {config.predicate.tie_break})")
    print(f"Statistics: {', '.join(config.aggregator.statistics)}")
    print(f"Output:     {config.output.path or '(none)'}")
    print('='*60)

    if verbose:
        print("\nFull Internal Configuration:")
        print(json.dumps(config.model_dump(), indent=2))
        print('='*60)

    pipeline = ZonalPipeline(config)
    return pipeline.start()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zonal-run",
        description="Aggregate a gridded field or point observations over zones",
    )
    parser.add_argument("zones", nargs="?", help="Zones GeoJSON (or set ZONES in the config)")
    parser.add_argument("field", nargs="?", help="Field NetCDF or points CSV (or set FIELD in the config)")
    parser.add_argument("--config", help="User config file (Python file with a CONFIG dict)")
    parser.add_argument("-o", "--output", help="Output file (.parquet or .csv)")
    parser.add_argument("--format", dest="output_format", choices=["parquet", "csv"], help="Output format")
    parser.add_argument("-s", "--statistic", dest="statistics", action="append",
                        help="Statistic to compute (repeatable): mean, sum, count, min, max, std")
    parser.add_argument("--predicate", choices=["center", "overlap", "within_distance"],
                        help="Membership predicate")
    parser.add_argument("--distance", type=float, help="Distance for within_distance, in field CRS units")
    parser.add_argument("--tie-break", choices=["lowest_id", "highest_id", "first"],
                        help="Rule for samples claimed by several zones")
    parser.add_argument("--zone-id-field", help="Zone property to use as zone id")
    parser.add_argument("--max-workers", type=int, help="Zone-level worker threads")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    cli_args = {
        "zones": args.zones,
        "field": args.field,
        "output": args.output,
        "output_format": args.output_format,
        "statistics": args.statistics,
        "predicate": args.predicate,
        "distance": args.distance,
        "tie_break": args.tie_break,
        "zone_id_field": args.zone_id_field,
        "max_workers": args.max_workers,
    }

    try:
        table = run_zonal_pipeline(args.config, cli_args=cli_args, verbose=args.verbose)
    except ZonalError as e:
        logger.error("Pipeline aborted: %s", e)
        print(f"error: {e}", file=sys.stderr)
        return 1

    print(f"Done: {len(table)} zones")
    return 0


if __name__ == "__main__":
    sys.exit(main())
