import structlog

from rotauth.core.logging import add_correlation_id, log_context, mask_secrets


def test_mask_secrets_hides_token_values():
    event = {"event": "exchange", "refresh_token": "raw-secret", "client_id": "spa"}

    result = mask_secrets(None, "info", event)

    assert result["refresh_token"] == "***"
    assert result["client_id"] == "spa"


def test_mask_secrets_leaves_empty_values():
    result = mask_secrets(None, "info", {"event": "x", "access_token": None})

    assert result["access_token"] is None


def test_add_correlation_id_keeps_bound_value():
    result = add_correlation_id(None, "info", {"correlation_id": "cid_request"})

    assert result["correlation_id"] == "cid_request"


def test_add_correlation_id_generates_one():
    result = add_correlation_id(None, "info", {})

    assert result["correlation_id"].startswith("cid_")


def test_log_context_binds_for_block_only():
    structlog.contextvars.clear_contextvars()

    with log_context(family_id="fam_1", client_id="spa"):
        bound = structlog.contextvars.get_contextvars()
        assert bound == {"family_id": "fam_1", "client_id": "spa"}

    assert structlog.contextvars.get_contextvars() == {}
