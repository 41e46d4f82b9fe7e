import logging

from minc_extension.shared import debug


def test_normalise_masks_credentials():
    text = debug.normalise({"url": "https://api.github.com", "headers": {"Authorization": "Bearer abc"}, "token": None})

    assert "abc" not in text
    assert '"Authorization":"***"' in text
    assert '"token":null' in text


def test_requests_logged_only_when_enabled(caplog, monkeypatch):
    monkeypatch.setattr(debug, "_enabled", False)
    with caplog.at_level(logging.DEBUG, logger="minc_extension"):
        debug.log_request("exec", {"command": ["minc", "version"]})
        assert caplog.records == []

        debug.enable()
        debug.log_request("exec", {"command": ["minc", "version"]})

    assert 'exec request: {"command":["minc","version"]}' in caplog.text
    monkeypatch.setattr(debug, "_enabled", False)
