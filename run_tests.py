#!/usr/bin/env python3
"""
Test runner script for lipidomics_toolkit

Runs one pytest session per pipeline stage and prints a summary. Pass stage
names (e.g. ``python run_tests.py extraction heatmap``) to run only those.
"""

import subprocess
import sys
import os


# Pipeline stage -> test modules covering it
TEST_SUITES = {
    "basic": ["tests/test_basic.py"],
    "extraction": ["tests/test_data_import.py", "tests/test_validation.py"],
    "joining": ["tests/test_preprocessing.py"],
    "significance": ["tests/test_statistical_analysis.py"],
    "normalization": ["tests/test_normalization.py"],
    "heatmap": ["tests/test_visualization.py"],
    "pipeline": ["tests/test_datasets.py", "tests/test_export.py"],
}


def run_suite(name, test_files):
    """Run one suite with pytest and return whether it passed"""
    print(f"\n{'='*60}")
    print(f"🧪 {name}: {' '.join(test_files)}")
    print('='*60)

    result = subprocess.run([sys.executable, "-m", "pytest", "--tb=short", "-q", *test_files], check=False)
    if result.returncode == 0:
        print(f"✅ {name} - PASSED")
        return True
    print(f"❌ {name} - FAILED (exit code: {result.returncode})")
    return False


def main(selected=None):
    """Run the selected suites (all by default)"""
    os.chdir(os.path.dirname(os.path.abspath(__file__)))

    names = selected or list(TEST_SUITES)
    unknown = [name for name in names if name not in TEST_SUITES]
    if unknown:
        print(f"Unknown suite(s): {unknown}; choose from {list(TEST_SUITES)}")
        return 2

    print("Lipidomics Toolkit Test Suite")
    results = [(name, run_suite(name, TEST_SUITES[name])) for name in names]

    print(f"\n{'='*60}")
    print("📊 TEST SUMMARY")
    print('='*60)
    for name, success in results:
        print(f"{'✅ PASSED' if success else '❌ FAILED':12} - {name}")

    failed = sum(1 for _, success in results if not success)
    print(f"\nOverall: {len(results) - failed}/{len(results)} suites passed")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
