import io
import shutil

from gocrack.size_recorder import WriteSizeLineRecorder, WriteSizeRecorder


class _Tee:
    def __init__(self, *targets):
        self.targets = targets

    def write(self, data):
        for target in self.targets:
            target.write(data)
        return len(data)


def test_write_size_recorder():
    src = io.BytesIO(b"this is a test string that we are going to copy!")
    dest = io.BytesIO()
    rec = WriteSizeRecorder()
    shutil.copyfileobj(src, _Tee(dest, rec))
    assert rec.size == 48
    assert dest.getvalue() == src.getvalue()


def test_write_size_line_recorder():
    payload = b"this is a test string that we are going to copy!\nbut with multiple lines!\nlike this!"
    dest = io.BytesIO()
    rec = WriteSizeLineRecorder()
    shutil.copyfileobj(io.BytesIO(payload), _Tee(dest, rec))
    assert rec.size == 84
    assert rec.lines == 3


def test_chunked_writes_add_up():
    payload = b"a\nb\nc\nd"
    rec = WriteSizeLineRecorder()
    for i in range(0, len(payload), 2):
        assert rec.write(payload[i : i + 2]) == len(payload[i : i + 2])
    assert rec.size == len(payload)
    assert rec.lines == payload.count(b"\n") + 1


def test_empty_recorder():
    rec = WriteSizeLineRecorder()
    assert rec.size == 0
    assert rec.lines == 1
    assert WriteSizeRecorder().size == 0