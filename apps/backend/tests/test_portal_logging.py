import json
import logging

from glusterapi.log import JsonFormatter, RequestIdFilter, outgoing_headers, request_id_ctx, setup_logging


def make_record(msg: str = "Created pv=%s") -> logging.LogRecord:
    return logging.LogRecord("portal.services.volumes", logging.INFO, __file__, 1, msg, ("gl-p-pv1",), None)


def test_json_record_carries_request_id():
    token = request_id_ctx.set("req-7")
    try:
        record = make_record()
        RequestIdFilter().filter(record)
    finally:
        request_id_ctx.reset(token)

    payload = json.loads(JsonFormatter("ssp-portal").format(record))
    assert payload["service"] == "ssp-portal"
    assert payload["node"] == JsonFormatter.node
    assert payload["request_id"] == "req-7"
    assert payload["msg"] == "Created pv=gl-p-pv1"
    assert payload["level"] == "info"


def test_record_without_request():
    record = make_record()
    RequestIdFilter().filter(record)
    assert record.request_id == "-"


def test_outgoing_headers_reuse_request_id():
    token = request_id_ctx.set("req-8")
    try:
        assert outgoing_headers() == {"X-Request-Id": "req-8"}
    finally:
        request_id_ctx.reset(token)
    assert outgoing_headers()["X-Request-Id"]


def test_setup_logging_replaces_root_handlers():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers, root.level
    try:
        setup_logging("gluster-api", json_logs=True, level="debug")
        (handler,) = root.handlers
        assert root.level == logging.DEBUG
        assert isinstance(handler.formatter, JsonFormatter)
        assert handler.formatter.service == "gluster-api"
    finally:
        root.handlers, root.level = saved_handlers, saved_level
