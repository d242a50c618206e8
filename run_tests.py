#!/usr/bin/env python3
"""
Test runner script for the Cosmogony Builder project.

This script provides various options for running tests including:
- All tests
- Specific test categories (unit, scenario)
- Coverage reporting
"""

import sys
import subprocess
import argparse


def run_command(cmd, description=""):
    """Run a command and return the result."""
    print(f"\n{'='*60}")
    if description:
        print(f"Running: {description}")
    print(f"Command: {' '.join(cmd)}")
    print(f"{'='*60}")

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False)

        if result.stdout:
            print("STDOUT:")
            print(result.stdout)

        if result.stderr:
            print("STDERR:")
            print(result.stderr)

        print(f"\nExit code: {result.returncode}")
        return result.returncode == 0

    except OSError as e:
        print(f"Error running command: {e}")
        return False


def run_all_tests():
    """Run the whole test suite."""
    cmd = [sys.executable, "-m", "pytest", "tests", "-v", "--tb=short"]
    return run_command(cmd, "All Tests")


def run_unit_tests():
    """Run component tests, skipping the end-to-end scenarios."""
    cmd = [sys.executable, "-m", "pytest", "tests", "-v", "--tb=short",
           "--ignore=tests/test_scenarios.py"]
    return run_command(cmd, "Unit Tests")


def run_scenario_tests():
    """Run end-to-end scenario tests only."""
    cmd = [sys.executable, "-m", "pytest", "tests/test_scenarios.py", "-v", "--tb=short"]
    return run_command(cmd, "Scenario Tests")


def run_coverage_tests():
    """Run tests with coverage reporting."""
    cmd = [sys.executable, "-m", "pytest", "tests", "--cov=cosmogony_builder",
           "--cov-report=html", "--cov-report=term-missing", "-v"]
    success = run_command(cmd, "Coverage Tests")

    if success:
        print("\nCoverage report generated in htmlcov/index.html")

    return success


def run_specific_test(test_file):
    """Run a specific test file."""
    cmd = [sys.executable, "-m", "pytest", test_file, "-v"]
    return run_command(cmd, f"Specific Test: {test_file}")


def check_test_environment():
    """Check if the test environment is properly set up."""
    print("Checking test environment...")
    print(f"Python version: {sys.version}")

    required_packages = ['shapely', 'numpy', 'pandas', 'rapidfuzz', 'tqdm', 'psutil', 'pytest']
    missing_packages = []

    for package in required_packages:
        try:
            __import__(package)
            print(f"[ok] {package} is available")
        except ImportError:
            print(f"[missing] {package} is missing")
            missing_packages.append(package)

    try:
        __import__('pytest_cov')
        print("[ok] pytest_cov is available (optional)")
    except ImportError:
        print("[-] pytest_cov is not available (optional)")

    try:
        import cosmogony_builder  # noqa: F401
        print("[ok] cosmogony_builder package is available")
    except ImportError as e:
        print(f"[missing] cosmogony_builder package import failed: {e}")
        missing_packages.append('cosmogony_builder')

    if missing_packages:
        print(f"\nMissing required packages: {', '.join(missing_packages)}")
        print("Please install them using: pip install -r requirements.txt")
        return False

    print("\nTest environment is ready")
    return True


def main():
    """Main test runner function."""
    parser = argparse.ArgumentParser(description="Cosmogony Builder Test Runner")
    parser.add_argument("--type", choices=["all", "unit", "scenario", "coverage"],
                        default="all", help="Type of tests to run")
    parser.add_argument("--file", help="Run specific test file")
    parser.add_argument("--check-env", action="store_true", help="Check test environment")

    args = parser.parse_args()

    if args.check_env:
        return 0 if check_test_environment() else 1

    if not check_test_environment():
        print("\nTest environment check failed. Please fix the issues above.")
        return 1

    if args.file:
        success = run_specific_test(args.file)
    elif args.type == "unit":
        success = run_unit_tests()
    elif args.type == "scenario":
        success = run_scenario_tests()
    elif args.type == "coverage":
        success = run_coverage_tests()
    else:
        success = run_all_tests()

    if success:
        print("\nAll tests completed successfully!")
        return 0
    else:
        print("\nSome tests failed. Please check the output above.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
