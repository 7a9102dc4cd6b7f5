"""Nox sessions for running the test suite across Python versions.

Usage:
    nox                     # run all sessions
    nox -s tests-3.12       # one interpreter only
    nox -l                  # list available sessions
"""

import nox

PYTHON_VERSIONS = ["3.10", "3.11", "3.12", "3.13"]


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run the unittest suite."""
    session.install("-e", ".[test]")
    session.run("python", "-m", "unittest", "discover", "-s", "tests", "-v")
