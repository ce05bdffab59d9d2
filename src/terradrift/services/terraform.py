"""Terraform adapter: runs init/plan against a project and classifies the result."""

import os
import re
from typing import List, Mapping, Optional, Tuple

from packaging import version

from terradrift.constants import (
    AUTOMATION_ENV,
    DEFAULT_TERRAFORM_BINARY,
    MAX_CONSOLE_LINES,
    MAX_SUMMARY_CHANGES,
    MIN_TERRAFORM_VERSION,
)
from terradrift.errors import (
    CompareFailureError,
    InitFailureError,
    PathNotFoundError,
    ToolUnavailableError,
    WatcherError,
)
from terradrift.errors_catalog import actionable_error
from terradrift.models import (
    Classification,
    ComparisonFailed,
    ComparisonOutcome,
    DriftDetected,
    NoDrift,
    classify_exit_code,
)

CHANGE_MARKERS = ("#", "~", "+", "-")
CHANGE_VERBS = ("created", "destroyed", "updated", "replaced")
SUMMARY_MARKERS = ("Plan:", "No changes", "to add", "to change", "to destroy")
ACTIONS_HEADER = "Terraform will perform the following actions:"
SECTION_SEPARATOR = "─" * 13
REFRESH_MARKERS = ("Refreshing state...", "Refreshing Terraform state", "Reading...", "Read complete")
VERSION_PATTERN = re.compile(r"Terraform v(\S+)")


def _is_change_line(line: str) -> bool:
    return "will be" in line and any(verb in line for verb in CHANGE_VERBS)


def extract_summary(plan_output: str) -> str:
    """Pulls the plan's change-count line and the first resource changes.

    Display aid only; never used for classification.
    """
    summary: List[str] = []
    changes: List[str] = []
    capturing = False

    for line in plan_output.splitlines():
        stripped = line.strip()

        if any(marker in line for marker in SUMMARY_MARKERS):
            summary.append(stripped)

        if ACTIONS_HEADER in line:
            capturing = True
            continue

        if capturing and (SECTION_SEPARATOR in line or stripped.startswith("Plan:")):
            capturing = False

        if capturing and stripped.startswith(CHANGE_MARKERS):
            changes.append(stripped)
        elif _is_change_line(line):
            changes.append(stripped)

    parts = ["\n".join(summary) if summary else "Drift detected in Terraform configuration"]
    if changes:
        parts.append("")
        parts.append("Resource Changes Detected:")
        parts.extend(f"  {change}" for change in changes[:MAX_SUMMARY_CHANGES])
        if len(changes) > MAX_SUMMARY_CHANGES:
            parts.append("  ... (more changes, see full plan for details)")
    return "\n".join(parts)


def relevant_plan_lines(plan_output: str, limit: int = MAX_CONSOLE_LINES) -> Tuple[List[str], bool]:
    """Returns up to ``limit`` non-boilerplate plan lines and whether more exist."""
    lines: List[str] = []
    for line in plan_output.splitlines():
        stripped = line.strip()
        if not stripped or any(marker in stripped for marker in REFRESH_MARKERS):
            continue
        if len(lines) == limit:
            return lines, True
        lines.append(line)
    return lines, False


class TerraformAdapter:
    """Drives ``terraform init`` and ``terraform plan -detailed-exitcode``."""

    LOCK_ARTIFACTS = (".terraform.lock.hcl", ".terraform.tfstate.lock.info")
    BACKEND_FAILURE_PATTERNS = (
        "Error loading backend config",
        "Backend initialization required",
        "Error configuring the backend",
    )
    PROVIDER_FAILURE_PATTERNS = (
        "Could not load plugin",
        "Provider produced inconsistent",
    )

    def __init__(
        self,
        command_runner,
        logger,
        binary: str = DEFAULT_TERRAFORM_BINARY,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.command_runner = command_runner
        self.logger = logger
        self.binary = binary
        self.environ = environ

    def validate_installation(self) -> Optional[str]:
        try:
            exit_code, output = self.command_runner.run([self.binary, "version"])
        except ToolUnavailableError as exc:
            raise ToolUnavailableError(actionable_error("tool_unavailable", binary=self.binary)) from exc
        if exit_code != 0:
            raise ToolUnavailableError(actionable_error("tool_unavailable", binary=self.binary))

        match = VERSION_PATTERN.search(output)
        if not match:
            self.logger.debug("Could not parse Terraform version from: %s", output.strip())
            return None

        detected = match.group(1)
        try:
            parsed = version.parse(detected)
        except version.InvalidVersion:
            self.logger.debug("Unrecognized Terraform version string: %s", detected)
            return detected

        self.logger.info("Using Terraform %s", parsed)
        if parsed < version.parse(MIN_TERRAFORM_VERSION):
            self.logger.warning(
                "Terraform %s is older than %s; plan exit codes may be unreliable.",
                parsed,
                MIN_TERRAFORM_VERSION,
            )
        return str(parsed)

    def check_drift(self, project_path: str) -> ComparisonOutcome:
        if not os.path.isdir(project_path):
            return ComparisonFailed(PathNotFoundError(f"Project path does not exist: {project_path}"))

        try:
            self.init(project_path)
        except WatcherError as exc:
            self.cleanup_lock_artifacts(project_path)
            return ComparisonFailed(exc, getattr(exc, "output", ""))

        try:
            exit_code, output = self.plan(project_path)
        except WatcherError as exc:
            self.cleanup_lock_artifacts(project_path)
            return ComparisonFailed(exc)

        classification = classify_exit_code(exit_code)
        if classification is Classification.CLEAN:
            return NoDrift(output)
        if classification is Classification.DRIFTED:
            return DriftDetected(summary=extract_summary(output), raw_output=output)

        self.cleanup_lock_artifacts(project_path)
        return ComparisonFailed(
            CompareFailureError(
                f"terraform plan failed with exit code {exit_code}",
                exit_code=exit_code,
                output=output,
            ),
            output,
        )

    def init(self, project_path: str) -> str:
        self.cleanup_lock_artifacts(project_path)
        exit_code, output = self.command_runner.run(
            [self.binary, "init", "-input=false", "-no-color", "-upgrade=false"],
            cwd=project_path,
            env=self._build_env(),
        )
        if exit_code == 0:
            return output

        if any(pattern in output for pattern in self.BACKEND_FAILURE_PATTERNS):
            raise InitFailureError(
                actionable_error("backend_init_failed", path=project_path),
                kind="backend",
                output=output,
            )
        if any(pattern in output for pattern in self.PROVIDER_FAILURE_PATTERNS):
            raise InitFailureError(
                actionable_error("provider_init_failed", path=project_path),
                kind="provider",
                output=output,
            )
        raise InitFailureError(
            f"terraform init failed with exit code {exit_code}",
            kind="generic",
            output=output,
        )

    def plan(self, project_path: str) -> Tuple[int, str]:
        return self.command_runner.run(
            [self.binary, "plan", "-input=false", "-no-color", "-detailed-exitcode"],
            cwd=project_path,
            env=self._build_env(),
        )

    def cleanup_lock_artifacts(self, project_path: str):
        for name in self.LOCK_ARTIFACTS:
            artifact = os.path.join(project_path, name)
            try:
                os.remove(artifact)
                self.logger.debug("Removed lock artifact: %s", artifact)
            except FileNotFoundError:
                continue
            except OSError as exc:
                self.logger.warning("Failed to clean up %s: %s", artifact, exc)

    def _build_env(self):
        env = dict(os.environ if self.environ is None else self.environ)
        if not env.get(AUTOMATION_ENV):
            env[AUTOMATION_ENV] = "true"
        return env
