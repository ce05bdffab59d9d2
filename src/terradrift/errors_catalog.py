"""Actionable error catalog for TerraDrift Watcher."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "lock_contention": {
        "what": "Another instance is already running (lock file: {path}).",
        "next": "Wait for the other run to finish, or pass `--force` if it is known to be dead.",
    },
    "tool_unavailable": {
        "what": "`{binary}` is not installed or not in PATH.",
        "next": "Install Terraform and make sure `{binary} version` works for this user.",
    },
    "backend_init_failed": {
        "what": "Backend initialization failed for {path}.",
        "next": "Check the backend block and its credentials; the backend may need manual `terraform init`.",
    },
    "provider_init_failed": {
        "what": "Provider initialization failed for {path}.",
        "next": "Check provider version constraints and plugin availability.",
    },
    "drift_unnotified": {
        "what": "Drift detected in '{project}' but no notifications were sent successfully.",
        "next": "Review the notifier errors above and verify webhook URLs.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
