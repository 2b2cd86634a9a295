import io
import json
import logging

import pytest

from comfy_relay import utils
from comfy_relay.shared import (
    ErrorCode,
    LinkedInputError,
    RelayError,
    ResolutionError,
    Result,
    TypeMismatchError,
    UnknownParameterError,
    log_structured,
    ms,
    prompt_id_var,
    timer,
)
from comfy_relay_shared import errors as errors_mod
from comfy_relay_shared import log as log_mod


def _capture(name):
    logger = log_mod.get_logger(name, level=logging.DEBUG)
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(log_mod.EmojiFormatter())
    logger.addHandler(handler)
    return logger, handler, stream


def test_result_ok_and_map():
    r = Result.Ok(5, node_id="3")
    assert r.ok and r.code == "OK"
    mapped = r.map(lambda x: x * 2)
    assert mapped.data == 10
    assert mapped.meta == {"node_id": "3"}


def test_result_err_accepts_enum_codes():
    r = Result.Err(ErrorCode.LINKED_INPUT, "seed is linked")
    assert not r.ok
    assert r.code == "LINKED_INPUT"
    assert r.map(lambda x: x) is r


def test_result_and_then():
    assert Result.Ok(2).and_then(lambda x: Result.Ok(x + 1)).data == 3
    err = Result.Err("NOT_FOUND", "missing")
    assert err.and_then(lambda x: Result.Ok(x)) is err


def test_result_unwrap_or():
    assert Result.Err("NOT_FOUND", "missing").unwrap_or(99) == 99
    assert Result.Ok(7).unwrap_or(99) == 7


@pytest.mark.parametrize(
    "code,exc_type",
    [
        ("NOT_FOUND", ResolutionError),
        ("LINKED_INPUT", LinkedInputError),
        ("TYPE_MISMATCH", TypeMismatchError),
        ("UNKNOWN_PARAMETER", UnknownParameterError),
    ],
)
def test_result_unwrap_raises_typed_error(code, exc_type):
    with pytest.raises(exc_type) as exc:
        Result.Err(code, "bad", node_id="3").unwrap()
    assert exc.value.code.value == code
    assert exc.value.meta == {"node_id": "3"}
    assert code in str(exc.value)


def test_raise_for_error_is_noop_when_ok():
    Result.Ok(None).raise_for_error()


def test_error_for_code_unknown_falls_back_to_base():
    err = errors_mod.error_for_code("SOMETHING_ELSE", "odd")
    assert type(err) is RelayError
    assert err.message == "odd"


def test_http_status_error_keeps_status_and_body():
    err = errors_mod.HttpStatusError(502, "bad gateway", url="http://x/prompt")
    assert err.status == 502
    assert err.body == "bad gateway"
    assert err.meta["url"] == "http://x/prompt"
    assert isinstance(err, errors_mod.TransportError)


def test_get_logger_does_not_duplicate_correlation_filter():
    logger = log_mod.get_logger("test_relay_shared_logger")
    logger = log_mod.get_logger("test_relay_shared_logger")
    filters = [f for f in logger.filters if isinstance(f, log_mod.CorrelationFilter)]
    assert len(filters) == 1
    assert logger.name == "comfy_relay.test_relay_shared_logger"
    assert log_mod.get_logger("comfy_relay.features.x").name == "comfy_relay.features.x"


def test_formatter_includes_prompt_id_from_context():
    logger, handler, stream = _capture("test_relay_shared_ctx")
    token = prompt_id_var.set("p-42")
    try:
        logger.info("queued")
    finally:
        prompt_id_var.reset(token)
        logger.removeHandler(handler)
    line = stream.getvalue()
    assert "[p-42]" in line
    assert "queued" in line
    assert "ComfyRelay" in line


def test_explicit_prompt_id_wins_over_context():
    logger, handler, stream = _capture("test_relay_shared_extra")
    token = prompt_id_var.set("outer")
    try:
        logger.warning("late image", extra={"prompt_id": "inner"})
    finally:
        prompt_id_var.reset(token)
        logger.removeHandler(handler)
    line = stream.getvalue()
    assert "[inner]" in line
    assert "[outer]" not in line


def test_success_level_and_structured_log():
    logger, handler, stream = _capture("test_relay_shared_structured")
    try:
        log_mod.log_success(logger, "done")
        log_structured(logger, logging.INFO, "fetched", node_id="9", count=2)
    finally:
        logger.removeHandler(handler)
    first, second = stream.getvalue().splitlines()[:2]
    assert log_mod.EMOJI_MAP["SUCCESS"] in first
    payload = json.loads(second.split(": ", 1)[1])
    assert payload["message"] == "fetched"
    assert payload["context"] == {"node_id": "9", "count": 2}
    assert payload["timestamp"].endswith("Z")


def test_timer_logs_elapsed():
    logger, handler, stream = _capture("test_relay_shared_timer")
    try:
        with timer("fetch", logger):
            pass
    finally:
        logger.removeHandler(handler)
    assert "fetch took" in stream.getvalue()
    assert ms() > 1_600_000_000_000


@pytest.mark.parametrize(
    "value,expected",
    [
        (["4", 0], True),
        (("12", 1), True),
        (["5:3", 0], True),
        ([4, 2], True),
        (["4", True], False),
        (["ckpt", 0], True),
        (["", 0], False),
        (["  ", 1], False),
        (["4", 0, 1], False),
        ("4", False),
        (None, False),
    ],
)
def test_is_link(value, expected):
    assert utils.is_link(value) is expected


def test_parse_bool_default_for_garbage():
    assert utils.parse_bool("sometimes", default=True) is True
    assert utils.parse_bool(0) is False
    assert utils.parse_bool(" On ") is True
