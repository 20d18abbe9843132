from __future__ import annotations


class PreflightError(RuntimeError):
    """A pre-flight condition failed; the run aborts before any step."""


class StepFailure(RuntimeError):
    """An apply action failed. Recorded in the run report, never fatal."""


class StepWarning(Exception):
    """An apply action gave up without failing (e.g. release metadata unavailable)."""


class ManifestError(ValueError):
    """The manifest is malformed or names an unknown step kind."""
