"""Domain errors and failure typing."""

from __future__ import annotations

from pathlib import Path


class PipelineError(Exception):
    """Base class for pipeline failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class ContractError(PipelineError):
    """Raised when strict input or output contracts are broken."""

    error_code = "CONTRACT_ERROR"


class StageError(PipelineError):
    """Raised for stage failures that should halt in strict mode."""

    error_code = "STAGE_ERROR"


class MissingInputFile(StageError):
    """Raised when a stage cannot find one of its source files."""

    error_code = "MISSING_INPUT_FILE"

    def __init__(self, path: Path, detail: str | None = None) -> None:
        self.path = path
        message = f"Missing input file: {path}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class MissingRequiredColumn(ContractError):
    """Raised when a header cannot be resolved to a required column."""

    error_code = "MISSING_REQUIRED_COLUMN"

    def __init__(self, column: str, path: Path | str) -> None:
        self.column = column
        self.path = path
        super().__init__(f"Required column {column} not found in {path}")


class NoBaselineStatistic(ContractError):
    """Raised when the baseline district has no qualifying statistic."""

    error_code = "NO_BASELINE_STATISTIC"

    def __init__(self, district: str) -> None:
        self.district = district
        super().__init__(f"No qualifying statistic for baseline district {district}")


class MalformedRow(PipelineError):
    """Raised by row builders; parsers catch it, skip the row and count the reason."""

    error_code = "MALFORMED_ROW"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)
