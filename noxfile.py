import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13", "3.14"]


def _install(session: nox.Session) -> None:
    """Install the project with the test extra into the nox virtualenv."""
    session.run(
        "poetry",
        "install",
        "--all-extras",
        external=True,
    )


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run full test suite across Python versions."""
    _install(session)
    session.run("pytest")


@nox.session(python=PYTHON_VERSIONS)
def tests_domain(session: nox.Session) -> None:
    """Run domain-layer tests only (no infrastructure required)."""
    _install(session)
    session.run("pytest", "tests/dispatch/domain/")


@nox.session(python=PYTHON_VERSIONS)
def tests_behaviour(session: nox.Session) -> None:
    """Run the order and agent scenarios written as feature files."""
    _install(session)
    session.run("pytest", "tests/dispatch/bdd/")


@nox.session(python=PYTHON_VERSIONS[-1])
def tests_api(session: nox.Session) -> None:
    """Run API, webhook and projection tests against one interpreter."""
    _install(session)
    session.run("pytest", "-m", "integration")
