import logging
import os
from typing import Optional

from rich.console import Console
from rich.markup import escape

from .constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_TERRAFORM_BINARY,
    EXIT_DRIFT,
    EXIT_ERROR,
    EXIT_INTERRUPTED,
    EXIT_OK,
    VERBOSE_ENV,
)
from .errors import ConfigError, CredentialApplyError, RunInterrupted, WatcherError
from .errors_catalog import actionable_error
from .models import (
    ComparisonFailed,
    ComparisonOutcome,
    CredentialProfile,
    DriftDetected,
    NoDrift,
    Project,
    ProjectReport,
    RunResult,
    WatcherConfig,
)
from .services.alerts import AlertDispatcher
from .services.command_runner import CommandRunner
from .services.credentials import CredentialScope
from .services.run_lock import RunLock
from .services.signals import SignalListener
from .services.terraform import TerraformAdapter, relevant_plan_lines

console = Console()
logger = logging.getLogger("terradrift")


class DriftWatcher:
    """Runs one drift check over every configured project.

    Lifecycle: acquire the run lock, arm the signal listener, verify Terraform,
    then check projects strictly in configuration order. Each project gets its
    own credential window (apply, plan, alert, clear). The lock is released on
    every return or exception path, but not when a signal terminates the
    process.
    """

    def __init__(
        self,
        config: WatcherConfig,
        verbose: bool = False,
        fail_on_drift: bool = False,
        force: bool = False,
        lock_dir: Optional[str] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        terraform_binary: str = DEFAULT_TERRAFORM_BINARY,
    ):
        self.config = config
        self.verbose = verbose
        self.fail_on_drift = fail_on_drift
        self.force = force
        self.max_retries = max_retries

        self.command_runner = CommandRunner(logger=logger)
        self.run_lock = RunLock(logger=logger, lock_dir=lock_dir)
        self.credentials = CredentialScope(logger=logger)
        self.terraform = TerraformAdapter(
            command_runner=self.command_runner,
            logger=logger,
            binary=terraform_binary,
        )
        self.alert_dispatcher = AlertDispatcher(logger=logger)
        self.signal_listener = SignalListener(logger=logger, on_signal=self.credentials.clear)

    def detect(self) -> RunResult:
        if self.force:
            self.run_lock.force_release()

        handle = self.run_lock.acquire()
        try:
            return self._check_projects()
        finally:
            try:
                self.run_lock.release(handle)
            except WatcherError as exc:
                logger.warning("Failed to release lock: %s", exc)

    def _check_projects(self) -> RunResult:
        self.signal_listener.arm()
        try:
            self.terraform.validate_installation()
            logger.info("Starting drift detection process...")

            result = RunResult()
            for project in self.config.projects:
                if not project.enabled:
                    logger.info("Skipping disabled project '%s'", project.name)
                    continue
                result.projects.append(self.check_project(project, result))

            logger.info("Drift detection process completed")
            return result
        except KeyboardInterrupt as exc:
            raise RunInterrupted("Drift detection interrupted by user") from exc
        finally:
            self.credentials.clear()
            self.signal_listener.disarm()

    def check_project(self, project: Project, result: RunResult) -> ProjectReport:
        logger.info("Checking for drift in '%s'...", project.name)
        try:
            with self.credentials.scoped(self._auth_profile_for(project)):
                outcome = self.terraform.check_drift(project.path)
                return self._handle_outcome(project, outcome, result)
        except CredentialApplyError as exc:
            message = f"Failed to set auth environment for project '{project.name}': {exc}"
            logger.error(message)
            result.record_error(message)
            return ProjectReport(name=project.name, status="error", error=str(exc))

    def _auth_profile_for(self, project: Project) -> Optional[CredentialProfile]:
        if not project.auth_profile:
            return None
        try:
            return self.config.get_auth_profile(project.auth_profile)
        except ConfigError as exc:
            raise CredentialApplyError(str(exc)) from exc

    def _handle_outcome(
        self,
        project: Project,
        outcome: ComparisonOutcome,
        result: RunResult,
    ) -> ProjectReport:
        if isinstance(outcome, NoDrift):
            logger.info("No drift detected in '%s'", project.name)
            return ProjectReport(name=project.name, status="clean")

        if isinstance(outcome, DriftDetected):
            result.drift_detected = True
            return self._report_drift(project, outcome, result)

        if isinstance(outcome, ComparisonFailed):
            message = f"Failed to check drift for project '{project.name}': {outcome.error}"
            logger.error(message)
            if outcome.output.strip():
                logger.error("Terraform output: %s", outcome.output.strip())
            result.record_error(message)
            return ProjectReport(name=project.name, status="error", error=str(outcome.error))

        raise TypeError(f"Unhandled comparison outcome: {outcome!r}")

    def _report_drift(
        self,
        project: Project,
        outcome: DriftDetected,
        result: RunResult,
    ) -> ProjectReport:
        logger.warning("ALERT: Drift detected in '%s'! Sending notifications...", project.name)
        console.print(f"[bold yellow]Drift detected in '{escape(project.name)}'[/bold yellow]")
        self._print_drift_detail(project.name, outcome)

        notified = 0
        for notifier_name in project.notifiers:
            try:
                channel = self.config.get_notifier(notifier_name)
                self.alert_dispatcher.send(
                    channel,
                    project.name,
                    outcome.summary,
                    outcome.raw_output,
                    max_retries=self.max_retries,
                )
            except WatcherError as exc:
                message = (
                    f"Failed to send notification via '{notifier_name}' "
                    f"for project '{project.name}': {exc}"
                )
                logger.error(message)
                result.record_error(message)
                continue

            notified += 1
            if channel.enabled:
                logger.info("Notification sent via '%s' for project '%s'", notifier_name, project.name)

        if notified == 0 and project.notifiers:
            logger.warning(actionable_error("drift_unnotified", project=project.name))

        return ProjectReport(name=project.name, status="drift", notified=notified)

    def _print_drift_detail(self, project_name: str, outcome: DriftDetected):
        logger.info("DRIFT SUMMARY for '%s':", project_name)
        for line in outcome.summary.splitlines():
            logger.info("  %s", line)

        if self._is_verbose():
            logger.info("FULL TERRAFORM PLAN OUTPUT:")
            logger.info("=" * 80)
            for line in outcome.raw_output.splitlines():
                logger.info("%s", line)
            logger.info("=" * 80)
            return

        lines, truncated = relevant_plan_lines(outcome.raw_output)
        if not lines:
            return
        logger.info("DRIFT DETAILS (first %s relevant lines):", len(lines))
        for line in lines:
            logger.info("  %s", line)
        if truncated:
            logger.info("  ... (use --verbose or run terraform plan manually for full details)")

    def _is_verbose(self) -> bool:
        return self.verbose or os.environ.get(VERBOSE_ENV, "").lower() == "true"

    def _print_run_summary(self, result: RunResult):
        styles = {"clean": "green", "drift": "yellow", "error": "red"}
        for report in result.projects:
            style = styles.get(report.status, "white")
            line = f"[{style}]{report.status.upper():<6}[/{style}] {escape(report.name)}"
            if report.status == "drift":
                line += f" (notified via {report.notified} channel(s))"
            elif report.error:
                line += f": {escape(report.error)}"
            console.print(line)

    def run(self) -> int:
        try:
            result = self.detect()
        except (KeyboardInterrupt, RunInterrupted):
            self.credentials.clear()
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            return EXIT_INTERRUPTED
        except WatcherError as exc:
            console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
            logger.error(str(exc))
            return EXIT_ERROR
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {escape(str(exc))}")
            logger.exception("Unexpected error")
            return EXIT_ERROR

        self._print_run_summary(result)

        if result.error is not None:
            console.print(f"[bold red]Error:[/bold red] {result.error}")
            return EXIT_ERROR
        if result.drift_detected and self.fail_on_drift:
            console.print("[yellow]Drift detected (exiting with code 2).[/yellow]")
            return EXIT_DRIFT
        return EXIT_OK
