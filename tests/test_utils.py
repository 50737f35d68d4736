import os

import pytest

from calcperiph.utils import (
    MarkedSpan,
    SpansConfigError,
    SpansWatcher,
    file_exists,
    mtime_ms,
    parse_argv,
    parse_colored_spans_config,
)


def write(tmp_path, text):
    path = tmp_path / "mem-spans.txt"
    path.write_text(text)
    return path


def test_parse_end_address_and_rgb(tmp_path):
    path = write(tmp_path, "1000,0x100F,FF0000,desc\n")
    spans = parse_colored_spans_config(path)
    assert spans == [MarkedSpan(start=0x1000, length=0x10, color=(255, 0, 0, 50), desc="desc")]


def test_parse_length_and_argb(tmp_path):
    path = write(tmp_path, "2000,16,11223344\n")
    (span,) = parse_colored_spans_config(path)
    assert span.start == 0x2000
    assert span.length == 16
    assert span.color == (0x22, 0x33, 0x44, 0x11)
    assert span.desc == ""


def test_parse_skips_comments_and_short_lines(tmp_path):
    path = write(tmp_path, "# a comment,1,2,3\n\n10,2\n10,2,00FF00\n")
    spans = parse_colored_spans_config(path)
    assert len(spans) == 1
    assert spans[0].color == (0, 255, 0, 50)


def test_parse_odd_colour_length_gives_default(tmp_path):
    path = write(tmp_path, "10,1,abc\n")
    (span,) = parse_colored_spans_config(path)
    assert span.color == (0, 0, 0, 50)
    assert span.length == 1


def test_parse_description_only_with_four_fields(tmp_path):
    path = write(tmp_path, "10,1,000000,a,b\n")
    (span,) = parse_colored_spans_config(path)
    assert span.desc == ""


def test_parse_missing_file(tmp_path):
    with pytest.raises(SpansConfigError):
        parse_colored_spans_config(tmp_path / "none.txt")


def test_file_exists_and_mtime(tmp_path):
    path = write(tmp_path, "x")
    assert file_exists(path)
    assert not file_exists(tmp_path / "nope")
    assert mtime_ms(path) == os.stat(path).st_mtime_ns // 1_000_000
    assert mtime_ms(tmp_path / "nope") == 0


def test_parse_argv_bare_model_and_pairs():
    result = parse_argv(["models/calc", "ram=ram.bin", "strict_memory="])
    assert result["model"] == "models/calc"
    assert result["ram"] == "ram.bin"
    assert result["strict_memory"] == ""
    assert result["script"] == "lua-common.lua"


def test_parse_argv_keeps_first_value():
    result = parse_argv(["ram=a", "ram=b", "first", "second"])
    assert result["ram"] == "a"
    assert result["model"] == "first"


def test_parse_argv_value_may_hold_equals():
    assert parse_argv(["key=a=b"])["key"] == "a=b"


def test_watcher_poll_reports_changes(tmp_path):
    path = write(tmp_path, "10,1,000000\n")
    received = []
    watcher = SpansWatcher(path, received.append)
    first = watcher.poll()
    assert first == received[0]
    assert len(first) == 1
    assert watcher.poll() is None
    assert len(received) == 1


def test_watcher_poll_missing_file_reports_empty(tmp_path):
    received = []
    watcher = SpansWatcher(tmp_path / "none.txt", received.append)
    assert watcher.poll() == []
    assert received == [[]]


def test_watcher_thread_polls_once_before_stop(tmp_path):
    path = write(tmp_path, "10,1,000000\n20,1,000000\n")
    received = []
    watcher = SpansWatcher(path, received.append, interval=10.0)
    watcher.start()
    watcher.stop()
    assert len(received) == 1
    assert [span.start for span in received[0]] == [0x10, 0x20]