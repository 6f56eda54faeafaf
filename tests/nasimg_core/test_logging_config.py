import logging

from nasimg_core.logging_config import (
    add_opentelemetry_ids,
    add_service_info,
    drop_color_message_key,
    redact_secrets,
    setup_structlog,
)
from nasimg_core.tracing import get_tracer


def test_add_service_info_reads_environment(monkeypatch):
    monkeypatch.setenv("SERVICE_NAME", "nasimg-test")
    monkeypatch.setenv("ENVIRONMENT", "ci")

    event = add_service_info(None, None, {"event": "x"})

    assert event["service"] == "nasimg-test"
    assert event["env"] == "ci"


def test_trace_ids_are_omitted_without_an_active_span():
    event = add_opentelemetry_ids(None, None, {"event": "x"})

    assert "trace_id" not in event
    assert "span_id" not in event


def test_drop_color_message_key():
    assert drop_color_message_key(None, None, {"event": "x", "color_message": "y"}) == {
        "event": "x"
    }


def test_redact_secrets_masks_credentials():
    event = redact_secrets(None, None, {"event": "x", "password": "hunter2", "user": "photos"})

    assert event == {"event": "x", "password": "**********", "user": "photos"}


def test_setup_structlog_caps_paramiko_noise():
    setup_structlog(json_logs=True, log_level="debug")

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("paramiko").level == logging.WARNING


def test_get_tracer_returns_a_tracer():
    tracer = get_tracer(__name__)

    with tracer.start_as_current_span("probe") as span:
        assert span is not None
