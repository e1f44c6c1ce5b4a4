from __future__ import annotations

from authsync.utils.redaction import redact_url, sanitize_params


def test_redact_url_masks_query_and_fragment():
    url = "sobers://auth/callback?code=abc&lang=en#access_token=A&refresh_token=B&type=signup"
    assert redact_url(url) == (
        "sobers://auth/callback?code=[redacted]&lang=en"
        "#access_token=[redacted]&refresh_token=[redacted]&type=signup"
    )


def test_redact_url_leaves_plain_urls_alone():
    assert redact_url("sobers://settings/profile") == "sobers://settings/profile"


def test_redact_url_unparseable():
    assert redact_url("http://[::1/callback?access_token=A") == "[unparseable url]"


def test_sanitize_params_strips_pii_recursively():
    params = {
        "method": "apple",
        "email": "a@b.c",
        "nested": {"display_name": "John D.", "count": 2, "items": [{"token": "t", "ok": True}]},
    }
    assert sanitize_params(params) == {
        "method": "apple",
        "nested": {"count": 2, "items": [{"ok": True}]},
    }


def test_sanitize_params_handles_cycles_and_empty():
    params: dict = {"a": 1}
    params["self"] = params
    assert sanitize_params(params) == {"a": 1, "self": None}
    assert sanitize_params(None) == {}
