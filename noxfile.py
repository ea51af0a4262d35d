"""Nox sessions for multi-version Python compatibility testing.

Usage:
    nox                     # run all sessions
    nox -s core             # unit tests
    nox -s lint             # lint only
    nox -l                  # list available sessions

Requires Python 3.10-3.13 installed locally (e.g. via pyenv or uv).
"""

import nox

PYTHON_VERSIONS = ["3.10", "3.11", "3.12", "3.13"]
CORE_TESTS = [
    "tests.test_models",
    "tests.test_parser",
    "tests.test_tree",
    "tests.test_formatting",
    "tests.test_votes",
    "tests.test_memory_store",
    "tests.test_rest_store",
    "tests.test_subscription",
    "tests.test_comment_thread",
    "tests.test_chat_room",
    "tests.test_config",
    "tests.test_cli",
]


@nox.session(python=PYTHON_VERSIONS)
def core(session: nox.Session) -> None:
    """Run the unit tests across Python versions."""
    session.install("-e", ".[dev]")
    session.run("python", "-m", "unittest", *CORE_TESTS, "-v")


@nox.session(python=PYTHON_VERSIONS)
def lint(session: nox.Session) -> None:
    """Run ruff linter across Python versions."""
    session.install("ruff>=0.15")
    session.run("ruff", "check", "src/", "tests/")
