"""Configuration loader for TerraDrift Watcher."""

import os
from pathlib import Path
from typing import Any, Dict, List

import yaml

from terradrift.errors import ConfigError
from terradrift.models import AlertChannel, CredentialProfile, Project, ProviderKind, WatcherConfig


class ConfigLoader:
    """Loads the YAML project/auth/notifier configuration."""

    SETTINGS_KEYS = {
        "check_interval",
        "lock_dir",
        "max_retries",
        "terraform_binary",
        "fail_on_drift",
        "verbose",
    }
    SUPPORTED_KEYS = {"projects", "auth_profiles", "notifiers"} | SETTINGS_KEYS

    def load(self, config_path: str) -> WatcherConfig:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        try:
            expanded = os.path.expandvars(path.read_text(encoding="utf-8"))
            parsed = yaml.safe_load(expanded)
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            parsed = {}
        if not isinstance(parsed, dict):
            raise ConfigError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ConfigError(f"Unknown configuration keys: {unknown_list}")

        config_dir = path.resolve().parent
        config = WatcherConfig(
            projects=tuple(
                self._parse_project(item, config_dir)
                for item in self._entries(parsed, "projects")
            ),
            auth_profiles=tuple(
                self._parse_auth_profile(item) for item in self._entries(parsed, "auth_profiles")
            ),
            notifiers=tuple(self._parse_notifier(item) for item in self._entries(parsed, "notifiers")),
            settings={key: parsed[key] for key in self.SETTINGS_KEYS if key in parsed},
        )
        self._validate(config)
        return config

    @staticmethod
    def _entries(parsed: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
        entries = parsed.get(key) or []
        if not isinstance(entries, list):
            raise ConfigError(f"'{key}' must be a list.")
        for entry in entries:
            if not isinstance(entry, dict):
                raise ConfigError(f"Every entry in '{key}' must be a mapping.")
        return entries

    @staticmethod
    def _string_map(value: Any, owner: str) -> Dict[str, str]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ConfigError(f"'config' of {owner} must be a mapping.")
        return {str(key): "" if item is None else str(item) for key, item in value.items()}

    @staticmethod
    def _enabled(value: Any, owner: str) -> bool:
        if value is None:
            return True
        if not isinstance(value, bool):
            raise ConfigError(f"'enabled' of {owner} must be true or false.")
        return value

    def _parse_project(self, item: Dict[str, Any], config_dir: Path) -> Project:
        name = str(item.get("name") or "").strip()
        raw_path = str(item.get("path") or "").strip()
        if raw_path and not os.path.isabs(raw_path):
            raw_path = os.path.normpath(os.path.join(str(config_dir), raw_path))

        notifiers = item.get("notifiers") or []
        if not isinstance(notifiers, list):
            raise ConfigError(f"'notifiers' of project {name or '<unnamed>'} must be a list.")

        return Project(
            name=name,
            path=raw_path,
            auth_profile=str(item["auth_profile"]) if item.get("auth_profile") else None,
            notifiers=tuple(str(notifier) for notifier in notifiers),
            enabled=self._enabled(item.get("enabled"), f"project {name}"),
        )

    def _parse_auth_profile(self, item: Dict[str, Any]) -> CredentialProfile:
        name = str(item.get("name") or "").strip()
        provider = str(item.get("provider") or "").strip()
        if not name:
            raise ConfigError("Auth profile found with empty name.")
        if not provider:
            raise ConfigError(f"Auth profile {name} has no provider specified.")
        return CredentialProfile(
            name=name,
            provider=ProviderKind.parse(provider),
            config=self._string_map(item.get("config"), f"auth profile {name}"),
        )

    def _parse_notifier(self, item: Dict[str, Any]) -> AlertChannel:
        name = str(item.get("name") or "").strip()
        kind = str(item.get("type") or "").strip().lower()
        if not name:
            raise ConfigError("Notifier found with empty name.")
        if not kind:
            raise ConfigError(f"Notifier {name} has no type specified.")
        return AlertChannel(
            name=name,
            kind=kind,
            config=self._string_map(item.get("config"), f"notifier {name}"),
            enabled=self._enabled(item.get("enabled"), f"notifier {name}"),
        )

    @staticmethod
    def _validate(config: WatcherConfig):
        if not config.projects:
            raise ConfigError("No projects defined in configuration.")

        profile_names = {profile.name for profile in config.auth_profiles}
        notifier_names = {notifier.name for notifier in config.notifiers}
        seen = set()

        for project in config.projects:
            if not project.name:
                raise ConfigError("Project found with empty name.")
            if project.name in seen:
                raise ConfigError(f"Duplicate project name: {project.name}")
            seen.add(project.name)
            if not project.path:
                raise ConfigError(f"Project {project.name} has no path specified.")
            if project.auth_profile and project.auth_profile not in profile_names:
                raise ConfigError(
                    f"Project {project.name} references unknown auth profile: {project.auth_profile}"
                )
            for notifier in project.notifiers:
                if notifier not in notifier_names:
                    raise ConfigError(
                        f"Project {project.name} references unknown notifier: {notifier}"
                    )
