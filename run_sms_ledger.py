#!/usr/bin/env python3
"""SMS Ledger: bank notification backups to ledger transactions.

This is the main entry point script for the SMS ledger.
It wraps the package CLI for convenient execution.

Usage:
    python run_sms_ledger.py sync --backup-dir ./backups/personal --source personal --user-id u1

For full documentation and options:
    python run_sms_ledger.py --help
"""

import sys
from pathlib import Path

# Add src to path for development installs
src_path = Path(__file__).parent / "src"
if src_path.exists():
    sys.path.insert(0, str(src_path))

from sms_ledger.cli import main

if __name__ == "__main__":
    sys.exit(main())
