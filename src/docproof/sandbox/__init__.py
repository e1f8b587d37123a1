"""Sandboxed execution of generated code inside throwaway containers."""

from .dependencies import sanitize_dependency, validate_dependencies
from .executor import ContainerExecutor, Executor, container_name
from .models import ExecutionOutcome, ExecutionStatus, Language, SandboxEnvironment

__all__ = [
    "ContainerExecutor",
    "ExecutionOutcome",
    "ExecutionStatus",
    "Executor",
    "Language",
    "SandboxEnvironment",
    "container_name",
    "sanitize_dependency",
    "validate_dependencies",
]
