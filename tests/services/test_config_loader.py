import pytest

from terradrift.errors import ConfigError
from terradrift.models import ProviderKind
from terradrift.services.config_loader import ConfigLoader

VALID_CONFIG = """
auth_profiles:
  - name: test-aws
    provider: aws
    config:
      access_key_id: ${TEST_ACCESS_KEY}
      secret_access_key: test-secret
      region: us-east-1

notifiers:
  - name: test-slack
    type: slack
    config:
      webhook_url: https://hooks.slack.com/test
  - name: muted
    type: teams
    enabled: false

projects:
  - name: network
    path: ./stacks/network
    auth_profile: test-aws
    notifiers:
      - test-slack
      - muted
  - name: legacy
    path: /srv/legacy
    enabled: false

max_retries: 5
check_interval: 1h
"""


def _write(tmp_path, content):
    config_file = tmp_path / "config.yml"
    config_file.write_text(content, encoding="utf-8")
    return config_file


def test_config_loader_builds_typed_config(tmp_path, monkeypatch):
    monkeypatch.setenv("TEST_ACCESS_KEY", "AKIA-from-env")
    config_file = _write(tmp_path, VALID_CONFIG)

    config = ConfigLoader().load(str(config_file))

    network, legacy = config.projects
    assert network.path == str(tmp_path.resolve() / "stacks" / "network")
    assert network.enabled is True
    assert network.notifiers == ("test-slack", "muted")
    assert legacy.enabled is False
    assert legacy.path == "/srv/legacy"

    profile = config.get_auth_profile("test-aws")
    assert profile.provider is ProviderKind.AWS
    assert profile.config["access_key_id"] == "AKIA-from-env"

    assert config.get_notifier("test-slack").enabled is True
    assert config.get_notifier("muted").enabled is False
    assert config.settings == {"max_retries": 5, "check_interval": "1h"}


def test_config_loader_does_not_require_project_paths_to_exist(tmp_path):
    config_file = _write(tmp_path, "projects:\n  - name: ghost\n    path: ./nowhere\n")

    config = ConfigLoader().load(str(config_file))

    assert config.projects[0].name == "ghost"


def test_unknown_provider_maps_to_other(tmp_path):
    config_file = _write(
        tmp_path,
        "auth_profiles:\n  - name: do\n    provider: digitalocean\n"
        "projects:\n  - name: app\n    path: .\n    auth_profile: do\n",
    )

    config = ConfigLoader().load(str(config_file))

    assert config.get_auth_profile("do").provider is ProviderKind.OTHER


def test_config_loader_rejects_unknown_keys(tmp_path):
    config_file = _write(tmp_path, "unknown_key: true\n")

    with pytest.raises(ConfigError, match="Unknown configuration keys"):
        ConfigLoader().load(str(config_file))


def test_config_loader_requires_existing_file(tmp_path):
    with pytest.raises(ConfigError, match="Config file not found"):
        ConfigLoader().load(str(tmp_path / "missing.yml"))


@pytest.mark.parametrize(
    "content, message",
    [
        ("projects: []\n", "No projects defined"),
        ("projects:\n  - path: .\n", "empty name"),
        ("projects:\n  - name: a\n", "has no path"),
        ("projects:\n  - name: a\n    path: .\n  - name: a\n    path: .\n", "Duplicate project name"),
        ("projects:\n  - name: a\n    path: .\n    auth_profile: nope\n", "unknown auth profile"),
        ("projects:\n  - name: a\n    path: .\n    notifiers: [nope]\n", "unknown notifier"),
        ("notifiers:\n  - name: n\nprojects:\n  - name: a\n    path: .\n", "has no type"),
        ("auth_profiles:\n  - name: p\nprojects:\n  - name: a\n    path: .\n", "has no provider"),
        ("projects:\n  - name: a\n    path: .\n    enabled: maybe\n", "must be true or false"),
        ("- just\n- a list\n", "YAML mapping"),
    ],
)
def test_config_loader_validation_errors(tmp_path, content, message):
    config_file = _write(tmp_path, content)

    with pytest.raises(ConfigError, match=message):
        ConfigLoader().load(str(config_file))
