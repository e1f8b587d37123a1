"""Code validation: generated tests for an artifact's usage patterns."""

from .agent import CodeValidationAgent, select_patterns
from .functional import FunctionalResult, FunctionalStatus, FunctionalValidator, extract_runnable_block
from .generator import PythonTestCodeGenerator, TestCodeGenerator
from .models import ValidationCase, ValidationReport

__all__ = [
    "CodeValidationAgent",
    "FunctionalResult",
    "FunctionalStatus",
    "FunctionalValidator",
    "PythonTestCodeGenerator",
    "TestCodeGenerator",
    "ValidationCase",
    "ValidationReport",
    "extract_runnable_block",
    "select_patterns",
]
