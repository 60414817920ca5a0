"""Pytest-based resolve phase tests."""

from pathlib import Path

from phase_tests import check_phase, discover

TESTS_DIR = Path(__file__).parent / "04_resolve"


def pytest_generate_tests(metafunc):
    """Parametrize tests over resolve test files."""
    if "resolve_input" in metafunc.fixturenames:
        metafunc.parametrize("resolve_input,resolve_expected", discover(TESTS_DIR))


def test_resolve(resolve_input: str, resolve_expected: str):
    """Verify the resolve phase produces the expected result."""
    check_phase("resolve", resolve_input, resolve_expected)
