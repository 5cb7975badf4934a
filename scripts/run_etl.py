"""
Script to run FPDS ingestion (daily, backfill or scheduled).

Accepts the same options as the ``fpds-ingest`` console script.
"""

import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from ingestion.cli import main


if __name__ == "__main__":
    sys.exit(main())
