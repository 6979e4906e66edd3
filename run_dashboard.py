#!/usr/bin/env python3
"""
Simple runner script for the Foresight dashboard.

Usage:
    python run_dashboard.py
"""

import os
import sys
from pathlib import Path

# Add src and dashboard to path for imports
root = Path(__file__).parent
sys.path.insert(0, str(root / "src"))
sys.path.insert(0, str(root / "dashboard"))

from app import create_app

if __name__ == "__main__":
    app = create_app()
    app.run(
        host=os.getenv("DASHBOARD_HOST", "127.0.0.1"),
        port=int(os.getenv("DASHBOARD_PORT", "5000")),
        debug=False,
    )
