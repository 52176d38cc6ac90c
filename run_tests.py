#!/usr/bin/env python3
"""
WaveCal Test Runner

Runs test suite with proper configuration and reports results.
"""

import subprocess
import sys
import os
from pathlib import Path


def run_tests(args=None):
    """Run pytest with arguments."""
    if args is None:
        args = []

    # Set PYTHONPATH to include project root
    root = str(Path(__file__).resolve().parent)
    existing = os.environ.get('PYTHONPATH')
    os.environ['PYTHONPATH'] = root + (os.pathsep + existing if existing else '')

    cmd = [sys.executable, "-m", "pytest", "-v", "--tb=short"] + args
    print(f"Running: {' '.join(cmd)}")
    print(f"PYTHONPATH: {os.environ['PYTHONPATH']}")
    print()

    result = subprocess.run(cmd, cwd=root)
    return result.returncode


def main():
    """Main test runner."""
    print("=" * 60)
    print("WaveCal Test Suite")
    print("=" * 60)
    print()

    test_args = sys.argv[1:] if len(sys.argv) > 1 else ["tests/"]

    return run_tests(test_args)


if __name__ == '__main__':
    sys.exit(main())
