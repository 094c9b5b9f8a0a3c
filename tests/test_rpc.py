import io

import pytest

from gatewaykit.rpc import (
    Handler,
    HandlerFunc,
    JsonDecodeError,
    JsonDecoder,
    JsonEncodeError,
    JsonEncoder,
    RpcError,
)
from gatewaykit.rw import LimitExceededError, ReadLimitProps

PAYLOAD = b'{"hamburger":"rare","potato":"fried"}\n'
EXPECTED = {"potato": "fried", "hamburger": "rare"}


def test_json_encoder_encode():
    buffer = io.BytesIO()
    JsonEncoder().encode(buffer, {"potato": "fried", "hamburger": "rare"})
    assert buffer.getvalue() == b'{"hamburger":"rare","potato":"fried"}\n'


def test_json_encoder_keeps_error_field_order():
    buffer = io.BytesIO()
    error = RpcError(1000, "Internal Error. Please check the status of the service.")
    JsonEncoder().encode(buffer, error)
    assert buffer.getvalue() == (
        b'{"errorCode":1000,"description":"Internal Error. '
        b'Please check the status of the service."}\n'
    )


def test_json_encoder_text_writer():
    buffer = io.StringIO()
    JsonEncoder().encode(buffer, {"result": "ok"})
    assert buffer.getvalue() == '{"result":"ok"}\n'


def test_json_encoder_unencodable_value():
    with pytest.raises(JsonEncodeError):
        JsonEncoder().encode(io.BytesIO(), {"value": object()})


def test_json_encode_decode_round_trip():
    value = {"b": [1, 2, {"c": None}], "a": "x<y"}
    buffer = io.BytesIO()
    JsonEncoder().encode(buffer, value)
    buffer.seek(0)
    assert JsonDecoder().decode(buffer) == value


def test_json_decoder_decode():
    assert JsonDecoder().decode(io.BytesIO(PAYLOAD)) == EXPECTED


def test_json_decoder_decode_with_limit():
    props = ReadLimitProps(limit=1024, fail_on_exceed=True)
    assert JsonDecoder().decode_with_limit(io.BytesIO(PAYLOAD), props) == EXPECTED


def test_json_decoder_decode_with_limit_too_small():
    props = ReadLimitProps(limit=10, fail_on_exceed=False)
    with pytest.raises(JsonDecodeError) as info:
        JsonDecoder().decode_with_limit(io.BytesIO(PAYLOAD), props)
    assert str(info.value) == "failed to decode json: unexpected EOF"


def test_json_decoder_decode_with_limit_too_much_data():
    props = ReadLimitProps(limit=10, fail_on_exceed=True)
    with pytest.raises(JsonDecodeError) as info:
        JsonDecoder().decode_with_limit(io.BytesIO(PAYLOAD), props)
    assert isinstance(info.value.__cause__, LimitExceededError)


def test_json_decoder_empty_input():
    with pytest.raises(JsonDecodeError) as info:
        JsonDecoder().decode(io.BytesIO(b"   "))
    assert str(info.value) == "failed to decode json: EOF"


def test_json_decoder_ignores_trailing_data():
    assert JsonDecoder().decode(io.BytesIO(b'{"a":1} {"b":2}')) == {"a": 1}


def test_handler_func():
    handler = HandlerFunc(lambda request: None)
    assert handler.handle(None) is None

    echo = HandlerFunc(lambda request: request)
    assert echo.handle({"key": "value"}) == {"key": "value"}


def test_handler_is_abstract():
    with pytest.raises(TypeError):
        Handler()


def test_rpc_error_text_and_dict():
    error = RpcError(2002, "Content-length header missing from request.")
    assert str(error) == "Content-length header missing from request."
    assert error.to_dict() == {
        "errorCode": 2002,
        "description": "Content-length header missing from request.",
    }