#!/usr/bin/env python3
"""
01_build_safety_trends.py

Build neighborhood safety trends from incident extracts and neighborhood
boundaries.

- Reads neighborhood polygons (GeoJSON / GeoParquet) with geopandas
- Reads one or more already-decoded incident tables (CSV / Parquet) with pandas
- Computes recent-vs-previous trends for each requested time window
- Logs per-window diagnostics (skipped records, parse errors, join stats)

Outputs:
- data/processed/trends/safety_trends.json (multi-window trend records)
- data/processed/trends/safety_trends.csv (one row per neighborhood, last window)
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from safety_trends.config import load_trend_config
from safety_trends.io_utils import atomic_write_df, atomic_write_json, read_dfs, read_gdf, read_yaml
from safety_trends.logging_utils import get_logger
from safety_trends.paths import PARAMS_FILE, TRENDS_DIR
from safety_trends.schemas import boundaries_from_gdf, points_from_dataframe
from safety_trends.trends import SafetyTrendEngine, summarize_trends, trends_for_window


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build neighborhood safety trends.")
    parser.add_argument("--neighborhoods", required=True, type=Path,
                        help="Neighborhood boundaries (GeoJSON or GeoParquet)")
    parser.add_argument("--points", required=True, nargs="+", type=Path,
                        help="Incident tables (CSV or Parquet), merged in order")
    parser.add_argument("--window", action="append", dest="windows",
                        help="Time window to compute (repeatable; default: all)")
    parser.add_argument("--category", action="append", dest="categories",
                        help="Category token to select (repeatable; default: all)")
    parser.add_argument("--id-col", default=None, help="Neighborhood id column")
    parser.add_argument("--name-col", default=None, help="Neighborhood name column")
    parser.add_argument("--config", type=Path, default=PARAMS_FILE,
                        help="Parameters file (default: configs/params.yml)")
    parser.add_argument("--output", type=Path, default=None,
                        help="Output JSON path (default: data/processed/trends/)")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    
    with get_logger("01_build_safety_trends") as logger:
        logger.info("Starting 01_build_safety_trends.py")
        
        config = load_trend_config(args.config)
        logger.log_config(config.to_dict())
        
        params = read_yaml(args.config) if args.config.exists() else {}
        output_config = (params or {}).get("output", {})
        if args.output is not None:
            output_json = args.output
            output_csv = args.output.with_suffix(".csv")
        else:
            output_json = TRENDS_DIR / output_config.get("trends_json", "safety_trends.json")
            output_csv = TRENDS_DIR / output_config.get("trends_csv", "safety_trends.csv")
        
        logger.log_inputs({
            "neighborhoods": str(args.neighborhoods),
            "points": [str(p) for p in args.points],
        })
        
        gdf = read_gdf(args.neighborhoods)
        boundaries = boundaries_from_gdf(gdf, id_col=args.id_col, name_col=args.name_col)
        logger.info(f"Loaded {len(boundaries)} neighborhoods")
        
        df = read_dfs(args.points)
        points = points_from_dataframe(df)
        logger.info(f"Loaded {len(points):,} incident records from {len(args.points)} file(s)")
        
        windows = args.windows or list(config.time_windows)
        unknown = [w for w in windows if w not in config.time_windows]
        if unknown:
            logger.error(
                f"Unknown time window(s) {unknown}; expected one of {list(config.time_windows)}"
            )
            return 1
        
        engine = SafetyTrendEngine(config=config, run_logger=logger)
        final = {}
        for window in windows:
            final = engine.compute_trends(
                boundaries, points, window, selected_categories=args.categories
            )
            if engine.diagnostics.malformed_input:
                logger.error(
                    f"Trend computation failed for {window}: {engine.diagnostics.malformed_input}"
                )
                return 1
        
        payload = {
            "windows": windows,
            "categories": args.categories or [],
            "analysis_year": config.analysis_year,
            "trends": {
                window: {
                    k: v.to_dict()
                    for k, v in trends_for_window(final, window).items()
                    if window in v.time_ranges
                }
                for window in windows
            },
        }
        atomic_write_json(payload, output_json)
        logger.info(f"Wrote: {output_json}")
        
        summary = summarize_trends(final)
        atomic_write_df(summary, output_csv, index=False)
        logger.info(f"Wrote: {output_csv} ({len(summary)} neighborhoods)")
        
        logger.log_outputs({
            "trends_json": str(output_json),
            "trends_csv": str(output_csv),
        })
        logger.log_metrics({
            "neighborhoods": len(boundaries),
            "incidents": len(points),
            "increased": int((summary["direction"] == "increased").sum()),
            "decreased": int((summary["direction"] == "decreased").sum()),
        })
    
    return 0


if __name__ == "__main__":
    sys.exit(main())
