import io

import pytest

from gatewaykit.rw import (
    LimitExceededError,
    LimitReader,
    ReadLimitProps,
    copy_with_limit,
)


def _remaining(buf: io.BytesIO) -> int:
    return len(buf.getvalue()) - buf.tell()


def test_limit_reader_read():
    buf = io.BytesIO(b"some data")
    data = LimitReader(buf, ReadLimitProps(fail_on_exceed=True, limit=16)).read(64)
    assert data == b"some data"
    assert _remaining(buf) == 0


def test_limit_reader_read_buf_too_small():
    buf = io.BytesIO(b"some data")
    reader = LimitReader(buf, ReadLimitProps(fail_on_exceed=False, limit=16))

    data = reader.read(8)
    assert len(data) == 8
    assert _remaining(buf) == 1

    data = reader.read(0)
    assert data == b""
    assert _remaining(buf) == 1


def test_limit_reader_read_with_limit_err_exceed():
    buf = io.BytesIO(b"some data")
    reader = LimitReader(buf, ReadLimitProps(fail_on_exceed=True, limit=8))
    with pytest.raises(LimitExceededError):
        reader.read(64)
    assert _remaining(buf) == 0


def test_limit_reader_read_with_limit():
    buf = io.BytesIO(b"some data")
    data = LimitReader(buf, ReadLimitProps(fail_on_exceed=False, limit=8)).read(64)
    assert data == b"some dat"
    assert _remaining(buf) == 1


def test_limit_reader_exceed_across_small_reads():
    reader = LimitReader(io.BytesIO(b"some data"), ReadLimitProps(fail_on_exceed=True, limit=8))
    assert reader.read(4) == b"some"
    assert reader.read(4) == b" dat"
    with pytest.raises(LimitExceededError):
        reader.read(4)


def test_limit_reader_err_on_eof():
    reader = LimitReader(io.BytesIO(b"abc"), ReadLimitProps(limit=16, err_on_eof=True))
    assert reader.read() == b"abc"
    with pytest.raises(EOFError):
        reader.read(1)


def test_limit_reader_eof_without_error():
    reader = LimitReader(io.BytesIO(b"abc"), ReadLimitProps(limit=16))
    assert reader.read() == b"abc"
    assert reader.read(1) == b""


def test_copy_with_limit():
    r = io.BytesIO(b"some data")
    w = io.BytesIO()
    n = copy_with_limit(w, r, ReadLimitProps(fail_on_exceed=False, limit=16))
    assert n == 9
    assert _remaining(r) == 0
    assert w.getvalue() == b"some data"


def test_copy_with_limit_err_exceed():
    r = io.BytesIO(b"some data")
    w = io.BytesIO()
    with pytest.raises(LimitExceededError):
        copy_with_limit(w, r, ReadLimitProps(fail_on_exceed=True, limit=8))


def test_copy_with_limit_truncates_without_fail():
    r = io.BytesIO(b"some data")
    w = io.BytesIO()
    n = copy_with_limit(w, r, ReadLimitProps(limit=4))
    assert n == 4
    assert w.getvalue() == b"some"


def test_copy_with_limit_no_reader():
    assert copy_with_limit(io.BytesIO(), None, ReadLimitProps(limit=4)) == 0


def test_copy_with_limit_no_writer():
    with pytest.raises(ValueError, match="writer cannot be nil"):
        copy_with_limit(None, io.BytesIO(b"x"), ReadLimitProps(limit=4))