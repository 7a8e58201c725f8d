# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Error taxonomy for cross-file relationship analysis.

Parameter validation errors (ProjectNotFoundError, SourceFileNotFoundError,
InvalidDepthError) are raised before any traversal or file I/O.
ParseFailedError aborts an analysis call when the entry file itself cannot
be parsed. Failures on dependency files are not raised; they are recorded
as SkippedFile entries (see models.SkippedFile) and logged.
"""

from typing import Optional


class AnalysisError(Exception):
    """Base class for all analysis errors."""

    pass


class ProjectNotFoundError(AnalysisError, FileNotFoundError):
    """Raised when the project root does not exist."""

    def __init__(self, project_path: str):
        self.project_path = project_path
        super().__init__(f"Project path does not exist: {project_path}")


class SourceFileNotFoundError(AnalysisError, FileNotFoundError):
    """Raised when an entry or target file does not exist."""

    def __init__(self, file_path: str):
        self.file_path = file_path
        super().__init__(f"File not found: {file_path}")


class InvalidDepthError(AnalysisError, ValueError):
    """Raised when the requested traversal depth is outside 1..3."""

    def __init__(self, depth: object):
        self.depth = depth
        super().__init__(f"Depth must be between 1 and 3, got {depth!r}")


class SourceParseError(AnalysisError):
    """Raised by the analyzer when a file cannot be read or parsed.

    The service converts this into ParseFailedError for the entry file and
    into a SkippedFile record for dependency files.
    """

    def __init__(self, file_path: str, reason: str, line: Optional[int] = None):
        self.file_path = file_path
        self.reason = reason
        self.line = line
        super().__init__(f"{file_path}: {self.detail}")

    @property
    def detail(self) -> str:
        """Reason with the line number appended when known."""
        if self.line is None:
            return self.reason
        return f"{self.reason} at line {self.line}"


class ParseFailedError(AnalysisError):
    """Raised when the entry file's own content cannot be analyzed."""

    def __init__(self, file_path: str, reason: str):
        self.file_path = file_path
        self.reason = reason
        super().__init__(f"Failed to parse {file_path}: {reason}")
