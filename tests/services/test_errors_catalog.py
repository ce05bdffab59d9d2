import pytest

from terradrift.errors_catalog import actionable_error


def test_actionable_error_formats_message_with_suggested_action():
    message = actionable_error("lock_contention", path="/tmp/terradrift-watcher.lock")

    assert "Another instance is already running (lock file: /tmp/terradrift-watcher.lock)." in message
    assert "Suggested action:" in message


def test_actionable_error_rejects_unknown_code():
    with pytest.raises(KeyError, match="Unknown error catalog key"):
        actionable_error("not_a_code")
