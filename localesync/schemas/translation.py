from __future__ import annotations

from pydantic import BaseModel, Field


class BatchErrorReport(BaseModel):
    target_file: str = Field(..., description="Output file the failed batch belonged to.")
    batch_number: int = Field(..., description="1-based position of the batch within its target.")
    batch_count: int = Field(..., description="Number of batches sent for the target.")
    kind: str = Field(..., description="Failure category, e.g. parse_error or retries_exhausted.")
    message: str = Field("", description="Human readable failure description.")
    cause_type: str | None = Field(default=None, description="Exception class of the cause.")
    prompt: str = Field("", description="Prompt sent to the assistant.")
    batch: dict[str, str] = Field(default_factory=dict, description="Source entries in the batch.")
    response: str | None = Field(default=None, description="Raw assistant response, if any.")


class TargetReport(BaseModel):
    filename: str
    status: str = Field(..., description="up_to_date, complete, partial or failed.")
    requested_keys: int = 0
    translated_keys: int = 0
    batch_count: int = 0
    failed_batches: int = 0
    written: bool = False


class TranslationRunReport(BaseModel):
    success: bool = Field(..., description="True when no batch failed.")
    source_keys: int = 0
    changed_keys: int = 0
    diff_available: bool = True
    targets: list[TargetReport] = Field(default_factory=list)
    errors: list[BatchErrorReport] = Field(default_factory=list)
