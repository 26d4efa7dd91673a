"""Turn free-text test tool output into TestResults.

Pure functions: text (and whether the process failed) in, results out.
Counts are best effort.  When the tool failed without printing anything
countable the result records at least one failure, and ``total`` is never
less than ``passed + failed + skipped``.
"""

from __future__ import annotations

import os
import re

from mesh_harness.models import TestResults

_NUMBER = re.compile(r"-?\d+")

BROWSER_METRICS = {
    "Tests:": "total",
    "Passed:": "passed",
    "Failed:": "failed",
    "Skipped:": "skipped",
}
BROWSER_ARTIFACT_SUFFIXES = (".png", ".mp4")

NATIVE_METRICS = {"PASS:": "passed", "FAIL:": "failed", "SKIP:": "skipped"}
NATIVE_TEST_MARKERS = {"--- PASS:": "passed", "--- FAIL:": "failed", "--- SKIP:": "skipped"}
NATIVE_RUN_MARKER = "=== RUN"
COVERAGE_SUFFIXES = (".out", ".cov", ".coverprofile")


def parse_number(text: str) -> int | None:
    """Leading integer of *text* with thousands separators removed."""
    match = _NUMBER.match(text.strip().replace(",", ""))
    return int(match.group()) if match else None


# --- Browser end-to-end runner ---


def parse_browser_output(output: str, failed: bool = False) -> TestResults:
    """Parse a browser runner's summary.

    Accepts a single aggregate line (``Tests: 10 Passed: 8 Failed: 2
    Skipped: 0``) as well as one metric per line.  Screenshot and video
    paths are collected into ``artifacts`` keyed by file name.
    """
    results = TestResults()
    for raw in output.splitlines():
        line = raw.strip()
        if any(label in line for label in BROWSER_METRICS):
            _parse_browser_summary(line, results)
        if "Duration:" in line:
            seconds = parse_duration(line)
            if seconds:
                results.duration = seconds
        if "Screenshot" in line or "Video" in line:
            path = _find_path(line, BROWSER_ARTIFACT_SUFFIXES)
            if path:
                results.artifacts[os.path.basename(path)] = path
    _finalize(results, failed)
    return results


def _parse_browser_summary(line: str, results: TestResults) -> None:
    if sum(label in line for label in BROWSER_METRICS) > 1:
        parts = line.split()
        for i, part in enumerate(parts[:-1]):
            field = BROWSER_METRICS.get(part)
            if field is None:
                continue
            value = parse_number(parts[i + 1])
            if value is not None:
                setattr(results, field, value)
        return

    for label, field in BROWSER_METRICS.items():
        if line.startswith(label):
            value = parse_number(line[len(label):])
            if value is not None:
                setattr(results, field, value)
            return


def parse_duration(line: str) -> float:
    """Seconds from a ``Duration: ...`` line (``1 minute, 30 seconds``, ``45 seconds``)."""
    if "Duration:" not in line:
        return 0.0
    total = 0.0
    parts = line.replace(",", " ").split()
    for i, part in enumerate(parts[1:], start=1):
        value = parse_number(parts[i - 1])
        if value is None:
            continue
        if part.startswith("second"):
            total += value
        elif part.startswith("minute"):
            total += value * 60
    return total


# --- Native integration-test runner ---


def parse_native_output(output: str, failed: bool = False) -> TestResults:
    """Parse ``go test`` style output.

    An explicit ``PASS: n, FAIL: n, SKIP: n`` summary wins; otherwise the
    per-test ``--- PASS:`` / ``--- FAIL:`` / ``--- SKIP:`` markers are
    counted.  Coverage profile paths become artifacts.
    """
    results = TestResults()
    summary_found = False
    markers = dict.fromkeys(NATIVE_TEST_MARKERS.values(), 0)

    for raw in output.splitlines():
        line = raw.strip()
        marker = next((m for m in NATIVE_TEST_MARKERS if line.startswith(m)), None)
        if marker is not None:
            markers[NATIVE_TEST_MARKERS[marker]] += 1
        elif any(label in line for label in NATIVE_METRICS):
            summary_found |= _parse_native_summary(line, results)
        if "coverage" in line:
            path = _find_path(line, COVERAGE_SUFFIXES)
            if path:
                results.artifacts[os.path.basename(path)] = path

    if not summary_found:
        for field, count in markers.items():
            setattr(results, field, count)

    if failed and _counted(results) == 0:
        runs = output.count(NATIVE_RUN_MARKER)
        if runs:
            results.total = runs
            results.failed = runs
    _finalize(results, failed)
    return results


def _parse_native_summary(line: str, results: TestResults) -> bool:
    found = False
    for part in line.split(","):
        part = part.strip()
        for label, field in NATIVE_METRICS.items():
            if part.startswith(label):
                value = parse_number(part[len(label):])
                if value is not None:
                    setattr(results, field, value)
                    found = True
    return found


# --- Private: helpers ---


def _find_path(line: str, suffixes: tuple[str, ...]) -> str:
    for part in line.split():
        token = part.strip("[]()")
        if token.endswith(suffixes):
            return token
    return ""


def _counted(results: TestResults) -> int:
    return results.passed + results.failed + results.skipped


def _finalize(results: TestResults, failed: bool) -> None:
    if failed and results.total == 0 and _counted(results) == 0:
        results.failed = 1
    results.total = max(results.total, _counted(results))
