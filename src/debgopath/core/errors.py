"""Exception hierarchy for workspace builds.

Run-level errors (release resolution, index decoding) abort before any package
is assembled. Per-package errors are collected by the orchestrator; only
hard ones prevent the snapshot from being published.
"""


class GopathError(Exception):
    """Base class for all errors reported to the command line."""


class ConfigError(GopathError):
    """Raised when the configuration file is invalid."""


class ReleaseResolutionError(GopathError):
    """Raised when release metadata cannot be fetched or parsed."""


class IndexDecodeError(GopathError):
    """Raised when the Sources index is malformed."""


class ArtifactFetchError(GopathError):
    """Raised when an artifact cannot be downloaded or fails verification."""

    def __init__(self, filename: str, message: str) -> None:
        self.filename = filename
        super().__init__(f"download({filename}): {message}")


class AssemblyError(GopathError):
    """Hard failure while assembling one source package."""

    soft = False

    def __init__(self, package_name: str, step: str, message: str) -> None:
        self.package_name = package_name
        self.step = step
        self.message = message
        super().__init__(f"src:{package_name}: {step}: {message}")


class MissingArtifactError(AssemblyError):
    """The package lacks a required artifact; it is skipped, the run continues."""

    soft = True


class UnplaceablePackageError(AssemblyError):
    """The package has no usable import path, or its path is already taken."""

    soft = True


class WorkspaceBuildError(GopathError):
    """The run failed; the staging directory was discarded."""

    def __init__(self, first_error: AssemblyError, failure_count: int) -> None:
        self.first_error = first_error
        self.failure_count = failure_count
        message = str(first_error)
        if failure_count > 1:
            message += f" (and {failure_count - 1} more failed package(s))"
        super().__init__(message)
