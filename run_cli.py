"""
CLI entry point for portfolio risk analysis.

Usage:
    python run_cli.py                        # Run with sample data
    python run_cli.py --prices prices.csv    # Run with a price file
    python run_cli.py --no-plots             # Skip plot generation

For installed package, use: pf-analyze
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from portfolio_risk.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
