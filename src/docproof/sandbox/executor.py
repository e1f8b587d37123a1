"""
Container executor for untrusted generated code.

Drives an OCI runtime CLI (docker, podman, ...) as a child process. Every
execution runs in a named, auto-removed container with the scratch
directory mounted at ``/workspace``. The container name is derived from the
scratch directory so concurrent passes never collide.
"""

from __future__ import annotations

import logging
import re
import shlex
import shutil
import subprocess
import tempfile
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from docproof.config import InstallSource, SandboxConfig
from docproof.errors import (
    RuntimeNotFoundError,
    SandboxInfrastructureError,
    SandboxTimeoutError,
)
from docproof.sandbox.dependencies import validate_dependencies
from docproof.sandbox.models import ExecutionOutcome, Language, SandboxEnvironment
from docproof.sandbox.process import run_best_effort, run_with_timeout

logger = logging.getLogger(__name__)

_WORKSPACE = "/workspace"
_SOURCE_MOUNT = "/src"
_VERSION_PROBE_TIMEOUT_S = 15.0
_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")

_ENTRY_FILES: dict[Language, str] = {
    Language.python: "test.py",
    Language.javascript: "test.js",
    Language.typescript: "test.js",
    Language.rust: "main.rs",
    Language.go: "main.go",
}

_RUN_LINES: dict[Language, str] = {
    Language.javascript: "node test.js",
    Language.typescript: "node test.js",
    Language.rust: "rustc main.rs -o main && ./main",
    Language.go: "go run main.go",
}


class Executor(Protocol):
    """Runs code in an isolated environment with guaranteed teardown."""

    def prepare(self, dependencies: Sequence[str]) -> SandboxEnvironment: ...

    def execute(
        self,
        env: SandboxEnvironment,
        code: str,
        language: Language | str | None = None,
    ) -> ExecutionOutcome: ...

    def teardown(self, env: SandboxEnvironment) -> None: ...


def container_name(prefix: str, workdir_name: str) -> str:
    """Derive a runtime-safe container name from a scratch directory name."""
    return f"{prefix}-test-{_UNSAFE_NAME_CHARS.sub('', workdir_name)}"


def build_run_script(language: Language, dependencies: Sequence[str]) -> str:
    """Shell script that installs dependencies and runs the entry file."""
    lines = ["#!/bin/sh", "set -e", f"cd {_WORKSPACE}"]
    if dependencies and language in (Language.javascript, Language.typescript):
        packages = " ".join(shlex.quote(dep) for dep in dependencies)
        lines.append(f"npm install --no-save {packages} > /dev/null 2>&1")
    lines.append(_RUN_LINES[language])
    return "\n".join(lines) + "\n"


class ContainerExecutor:
    """``Executor`` backed by a container runtime command line."""

    def __init__(
        self,
        config: SandboxConfig | None = None,
        language: Language | str = Language.python,
    ) -> None:
        self.config = config or SandboxConfig()
        self.language = Language.parse(language)
        self._runtime_checked = False

    # -- lifecycle -----------------------------------------------------------

    def prepare(self, dependencies: Sequence[str] = ()) -> SandboxEnvironment:
        # Names are validated before anything is spawned.
        deps = validate_dependencies(dependencies)
        self._check_runtime()

        try:
            workdir = Path(tempfile.mkdtemp(prefix=f"{self.config.name_prefix}-"))
        except OSError as exc:
            raise SandboxInfrastructureError(f"Failed to create scratch directory: {exc}") from exc

        env = SandboxEnvironment(
            workdir=workdir,
            unit_name=container_name(self.config.name_prefix, workdir.name),
            dependencies=deps,
            language=self.language,
        )
        logger.info(
            "Sandbox: prepared %s (workdir=%s, dependencies=%d)",
            env.unit_name,
            env.workdir,
            len(deps),
        )
        return env

    def execute(
        self,
        env: SandboxEnvironment,
        code: str,
        language: Language | str | None = None,
    ) -> ExecutionOutcome:
        """Run *code* inside a fresh container bound to *env*.

        Non-zero exit is a ``fail`` outcome and a blown deadline is a
        ``timeout`` outcome. Only infrastructure problems raise.
        """
        lang = Language.parse(language) if language is not None else env.language
        entry = self._write_workspace(env, lang, code)
        argv = self._run_argv(env, entry, lang)

        # A container left over from a crashed attempt would block the name.
        run_best_effort([self.config.runtime, "rm", "-f", env.unit_name])

        logger.info(
            "Sandbox: running %s in %s (image=%s, extra_env_keys=%s)",
            _ENTRY_FILES[lang],
            env.unit_name,
            self.config.image_for(lang.value),
            sorted(self.config.extra_env),
        )
        start = time.monotonic()
        try:
            completed = run_with_timeout(
                argv,
                self.config.timeout_s,
                on_timeout=lambda: self._kill_unit(env.unit_name),
                output_cap_bytes=self.config.output_cap_bytes,
            )
        except SandboxTimeoutError:
            return ExecutionOutcome.timed_out(self.config.timeout_s, _elapsed_ms(start))
        except SandboxInfrastructureError:
            self._kill_unit(env.unit_name)
            raise

        return _outcome_from(completed, _elapsed_ms(start))

    def teardown(self, env: SandboxEnvironment) -> None:
        if not self.config.cleanup:
            logger.info(
                "Sandbox: cleanup disabled, keeping %s and %s", env.unit_name, env.workdir
            )
            return
        run_best_effort([self.config.runtime, "rm", "-f", env.unit_name])
        shutil.rmtree(env.workdir, ignore_errors=True)
        logger.debug("Sandbox: removed %s", env.unit_name)

    # -- helpers -------------------------------------------------------------

    def _check_runtime(self) -> None:
        if self._runtime_checked:
            return
        runtime = self.config.runtime
        if shutil.which(runtime) is None:
            raise RuntimeNotFoundError(
                f"Container runtime {runtime!r} not found on PATH. "
                "Install it or configure a different runtime."
            )
        try:
            probe = subprocess.run(
                [runtime, "--version"],
                capture_output=True,
                text=True,
                timeout=_VERSION_PROBE_TIMEOUT_S,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            raise RuntimeNotFoundError(f"Container runtime {runtime!r} is unusable: {exc}") from exc
        if probe.returncode != 0:
            raise RuntimeNotFoundError(
                f"Container runtime {runtime!r} failed its version probe: {probe.stderr.strip()}"
            )
        logger.debug("Sandbox: runtime %s", probe.stdout.strip())
        self._runtime_checked = True

    def _write_workspace(self, env: SandboxEnvironment, language: Language, code: str) -> list[str]:
        """Write the entry file (and run.sh when needed); return the container command."""
        try:
            (env.workdir / _ENTRY_FILES[language]).write_text(code, encoding="utf-8")
            if language is Language.python:
                return self._python_entry()
            script = build_run_script(language, env.dependencies)
            (env.workdir / "run.sh").write_text(script, encoding="utf-8")
        except OSError as exc:
            raise SandboxInfrastructureError(
                f"Failed to write workspace files in {env.workdir}: {exc}"
            ) from exc
        return ["/bin/sh", "run.sh"]

    def _python_entry(self) -> list[str]:
        # Dependencies come from the PEP 723 header, resolved by uv.
        if self.config.install_source is InstallSource.local_install:
            return [
                "sh",
                "-c",
                f"cd {_WORKSPACE} && uv pip install --system {_SOURCE_MOUNT} && uv run test.py",
            ]
        return ["uv", "run", "test.py"]

    def _run_argv(
        self, env: SandboxEnvironment, entry: list[str], language: Language
    ) -> list[str]:
        argv = [self.config.runtime, "run"]
        if self.config.cleanup:
            argv.append("--rm")
        argv += ["--name", env.unit_name, "-v", f"{env.workdir}:{_WORKSPACE}"]

        if self.config.install_source is not InstallSource.registry:
            source = self.config.require_source_path()
            argv += ["-v", f"{source}:{_SOURCE_MOUNT}:ro"]
            if self.config.install_source is InstallSource.local_mount:
                argv += ["-e", f"PYTHONPATH={_SOURCE_MOUNT}"]

        for key, value in sorted(self.config.extra_env.items()):
            argv += ["-e", f"{key}={value}"]

        argv += ["-w", _WORKSPACE, self.config.image_for(language.value), *entry]
        return argv

    def _kill_unit(self, unit_name: str) -> None:
        run_best_effort([self.config.runtime, "kill", unit_name])
        if self.config.cleanup:
            run_best_effort([self.config.runtime, "rm", "-f", unit_name])


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _outcome_from(completed: subprocess.CompletedProcess[str], duration_ms: int) -> ExecutionOutcome:
    if completed.returncode == 0:
        return ExecutionOutcome.passed(completed.stdout, duration_ms)
    return ExecutionOutcome.failed(
        f"stdout:\n{completed.stdout}\nstderr:\n{completed.stderr}", duration_ms
    )
