"""Drift alert delivery over webhook channels with retry and backoff."""

import time
from typing import Any, Callable, Dict

import requests

from terradrift.constants import DEFAULT_MAX_RETRIES, MAX_PLAN_OUTPUT_LENGTH
from terradrift.errors import ChannelDeliveryError, UnsupportedChannelError
from terradrift.models import AlertChannel

BOT_NAME = "TerraDrift Watcher"
TRUNCATION_MARKER = "\n... (truncated)"
WEBHOOK_URL_KEY = "webhook_url"


def truncate_output(output: str, limit: int = MAX_PLAN_OUTPUT_LENGTH) -> str:
    if len(output) <= limit:
        return output
    return output[:limit] + TRUNCATION_MARKER


def drift_headline(project_name: str) -> str:
    return f"Drift Detected in Project: {project_name}"


class AlertDispatcher:
    """Builds the per-kind alert payload and POSTs it with exponential backoff."""

    def __init__(
        self,
        logger,
        requests_module=requests,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
        timeout: float = 10.0,
        backoff_unit: float = 1.0,
    ):
        self.logger = logger
        self.requests = requests_module
        self.sleep = sleep
        self.clock = clock
        self.timeout = timeout
        self.backoff_unit = backoff_unit
        self._payload_builders: Dict[str, Callable[[str, str, str], Dict[str, Any]]] = {
            "slack": self._slack_payload,
            "teams": self._teams_payload,
            "webhook": self._webhook_payload,
        }

    def send(
        self,
        channel: AlertChannel,
        project_name: str,
        summary: str,
        full_output: str,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ):
        if not channel.enabled:
            self.logger.info("Skipping disabled notifier '%s'", channel.name)
            return

        builder = self._payload_builders.get(channel.kind)
        if builder is None:
            raise UnsupportedChannelError(
                f"Unknown notifier type '{channel.kind}' for notifier '{channel.name}'"
            )

        url = channel.config.get(WEBHOOK_URL_KEY)
        if not url:
            raise ChannelDeliveryError(
                f"{channel.kind} webhook URL not configured for notifier '{channel.name}'",
                transient=False,
                attempts=0,
            )

        payload = builder(project_name, summary, truncate_output(full_output))
        total_attempts = max(0, max_retries) + 1
        last_error = None

        for attempt in range(total_attempts):
            if attempt > 0:
                backoff = self.backoff_unit * (2 ** (attempt - 1))
                self.logger.info(
                    "Retrying notifier '%s' (attempt %s/%s) after %.1fs",
                    channel.name,
                    attempt + 1,
                    total_attempts,
                    backoff,
                )
                self.sleep(backoff)

            try:
                self._post(url, payload)
            except ChannelDeliveryError as exc:
                last_error = exc
                self.logger.warning(
                    "Notifier '%s' attempt %s/%s failed: %s",
                    channel.name,
                    attempt + 1,
                    total_attempts,
                    exc,
                )
                continue

            if attempt > 0:
                self.logger.info("Notifier '%s' succeeded on attempt %s", channel.name, attempt + 1)
            return

        raise ChannelDeliveryError(
            f"Failed after {total_attempts} attempts: {last_error}",
            transient=last_error.transient,
            attempts=total_attempts,
        ) from last_error

    def _post(self, url: str, payload: Dict[str, Any]):
        try:
            response = self.requests.post(url, json=payload, timeout=self.timeout)
        except self.requests.RequestException as exc:
            raise ChannelDeliveryError(f"Failed to send notification: {exc}", transient=True) from exc

        status = response.status_code
        if not 200 <= status < 300:
            raise ChannelDeliveryError(
                f"Webhook returned status {status}",
                transient=status >= 500 or status == 429,
            )

    def _slack_payload(self, project_name: str, summary: str, output: str) -> Dict[str, Any]:
        return {
            "text": f":rotating_light: *{drift_headline(project_name)}*",
            "username": BOT_NAME,
            "icon_emoji": ":warning:",
            "attachments": [
                {
                    "color": "danger",
                    "title": "Configuration Drift Alert",
                    "text": summary,
                    "fields": [
                        {"title": "Project", "value": project_name, "short": True},
                        {"title": "Status", "value": "Drift Detected", "short": True},
                    ],
                    "footer": BOT_NAME,
                    "ts": int(self.clock()),
                },
                {
                    "color": "warning",
                    "title": "Plan Output",
                    "text": f"```{output}```",
                },
            ],
        }

    def _teams_payload(self, project_name: str, summary: str, output: str) -> Dict[str, Any]:
        return {
            "@type": "MessageCard",
            "@context": "https://schema.org/extensions",
            "themeColor": "D70000",
            "summary": drift_headline(project_name),
            "title": drift_headline(project_name),
            "sections": [
                {
                    "activityTitle": "Configuration Drift Alert",
                    "facts": [
                        {"name": "Project", "value": project_name},
                        {"name": "Status", "value": "Drift Detected"},
                    ],
                    "text": summary,
                },
                {"title": "Plan Output", "text": f"<pre>{output}</pre>"},
            ],
        }

    def _webhook_payload(self, project_name: str, summary: str, output: str) -> Dict[str, Any]:
        return {
            "headline": drift_headline(project_name),
            "project": project_name,
            "summary": summary,
            "output": output,
            "timestamp": int(self.clock()),
        }
