import json
import logging

from coffeechat.obs import logging as obs_logging


def _record(**extra) -> logging.LogRecord:
	record = logging.LogRecord("coffeechat.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
	for key, value in extra.items():
		setattr(record, key, value)
	return record


def test_formatter_emits_json_with_bound_request_id() -> None:
	tokens = obs_logging.bind_context(request_id="req-1", client_ip="10.0.0.1")
	try:
		payload = json.loads(obs_logging.JSONLogFormatter().format(_record(appointment_id="a1")))
	finally:
		obs_logging.reset_context(tokens)
	assert payload["msg"] == "hello world"
	assert payload["request_id"] == "req-1"
	assert payload["ip"] == "10.0.0.1"
	assert payload["appointment_id"] == "a1"
	assert obs_logging.current_request_id() is None


def test_formatter_redacts_user_text_and_credentials() -> None:
	payload = json.loads(
		obs_logging.JSONLogFormatter().format(
			_record(evidence="screenshot", comment="rude", admin_api_key="k", checkin_code="1234", email="a@b.dev")
		)
	)
	for key in ("evidence", "comment", "admin_api_key", "checkin_code", "email"):
		assert payload[key] == "[redacted]"


def test_formatter_truncates_long_values() -> None:
	payload = json.loads(obs_logging.JSONLogFormatter().format(_record(note="x" * 1000)))
	assert len(payload["note"]) == 257
