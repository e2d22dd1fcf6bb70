"""
Test runner command line tests
"""
import argparse
import sys

from run_tests import build_command, main


def test_unit_suite_with_coverage(monkeypatch):
    calls = []

    class Result:
        returncode = 0

    monkeypatch.setattr("run_tests.subprocess.run", lambda cmd: calls.append(cmd) or Result())

    assert main(["--unit", "-c", "-k", "codec", "-x"]) == 0

    assert calls == [[
        sys.executable, "-m", "pytest",
        "-m", "not integration",
        "-k", "codec",
        "--cov=chat_client", "--cov-report=term-missing",
        "-x"
    ]]


def test_integration_suite_verbose():
    args = argparse.Namespace(suite="integration", keyword=None, coverage=False, html_report=False, verbose=True)

    assert build_command(args, []) == [sys.executable, "-m", "pytest", "-m", "integration", "-v"]
