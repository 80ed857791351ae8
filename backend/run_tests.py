#!/usr/bin/env python3
"""
Test runner script for the location risk backend.
"""
import subprocess
import sys
import os

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


def run_tests():
    """Run the test suite."""
    os.chdir(ROOT)

    print("Installing package with test dependencies...")
    subprocess.run([
        sys.executable, "-m", "pip", "install", "-e", ".[test]"
    ], check=True)

    print("Running tests...")
    result = subprocess.run([
        sys.executable, "-m", "pytest",
        "--verbose",
        "--tb=short",
        "backend/tests/",
        *sys.argv[1:],
    ])

    return result.returncode


if __name__ == "__main__":
    sys.exit(run_tests())
