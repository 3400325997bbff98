#!/usr/bin/env python3
"""
Scan Audit - run and verify security-audit scans from a source checkout.

Usage:
    audit.py run                  # Run all audit scenarios
    audit.py run audit-npm        # Run one scenario
    audit.py validate out.json --min-vulnerabilities 1
    audit.py completion bash
"""

import os
import sys

# Add current directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from scan_audit.cli import main  # noqa: E402


if __name__ == "__main__":
    sys.exit(main())
