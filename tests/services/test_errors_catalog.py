import pytest

from nodesmith.errors_catalog import actionable_error


def test_actionable_error_formats_message_with_suggested_action():
    message = actionable_error("sync_timeout", minutes="5", execution="True", consensus="False")

    assert "Clients were not synced after 5 minutes" in message
    assert "consensus synced: False" in message
    assert "Suggested action:" in message


def test_actionable_error_rejects_unknown_code():
    with pytest.raises(KeyError, match="Unknown error catalog key"):
        actionable_error("no_such_code")
