# Author: Zhongkai Fu (fuzhongkai@gmail.com)
# License: BSD 3-Clause License

"""Workflow graph verification helpers shared by the pipeline and the CLI."""

from flowguard.verification.report import ValidationIssue, ValidationReport
from flowguard.verification.structure import (
    FATAL_STRUCTURE_CODES,
    has_fatal_structure_errors,
    validate_structure,
)
from flowguard.verification.variables import VariableIdValidator, validate_variable_ids

__all__ = [
    "FATAL_STRUCTURE_CODES",
    "ValidationIssue",
    "ValidationReport",
    "VariableIdValidator",
    "has_fatal_structure_errors",
    "validate_structure",
    "validate_variable_ids",
]
