#!/usr/bin/env python3
"""``zonal`` Zone-Value Aggregation Pipeline Runner.

Usage:
    python scripts/run_zonal_pipeline.py --config scripts/user_config.py
    python scripts/run_zonal_pipeline.py districts.geojson ndvi.nc -s mean -s std
    python scripts/run_zonal_pipeline.py districts.geojson cases.csv --predicate within_distance --distance 5000

Note: User config in scripts/user_config.py, expert defaults in zonal.schemas.param
"""

import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root / "src"))

from zonal.cli.run_zonal import main


if __name__ == "__main__":
    sys.exit(main())
