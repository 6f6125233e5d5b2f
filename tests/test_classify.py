from pathlib import Path

from projsnap.core import Classification, classify


def _write(tmp_path: Path, name: str, data: bytes) -> Path:
    path = tmp_path / name
    path.write_bytes(data)
    return path


def test_empty_file_is_text(tmp_path):
    kind, err = classify(_write(tmp_path, "empty.txt", b""))
    assert kind is Classification.TEXT
    assert err is None


def test_nul_bytes_mean_binary(tmp_path):
    kind, _ = classify(_write(tmp_path, "blob.dat", b"\x00AB\x00"))
    assert kind is Classification.BINARY


def test_printable_ascii_is_text(tmp_path):
    kind, _ = classify(_write(tmp_path, "letters.txt", b"a" * 1000))
    assert kind is Classification.TEXT


def test_tabs_and_line_endings_count_as_text(tmp_path):
    kind, _ = classify(_write(tmp_path, "crlf.txt", b"a\tb\r\n" * 200))
    assert kind is Classification.TEXT


def test_high_byte_ratio_above_threshold_is_binary(tmp_path):
    kind, _ = classify(_write(tmp_path, "forty.bin", b"\xff" * 40 + b"a" * 60))
    assert kind is Classification.BINARY


def test_high_byte_ratio_below_threshold_is_text(tmp_path):
    kind, _ = classify(_write(tmp_path, "twenty.txt", b"\xff" * 20 + b"a" * 80))
    assert kind is Classification.TEXT


def test_control_characters_count_against_text(tmp_path):
    kind, _ = classify(_write(tmp_path, "ctrl.bin", b"\x01\x02\x03\x04" * 10 + b"a" * 60))
    assert kind is Classification.BINARY


def test_only_leading_sample_is_inspected(tmp_path):
    data = b"a" * 8192 + b"\x00" * 100
    kind, _ = classify(_write(tmp_path, "late_nul.txt", data))
    assert kind is Classification.TEXT


def test_unreadable_file_falls_back_to_binary(tmp_path):
    kind, err = classify(tmp_path / "missing.txt")
    assert kind is Classification.BINARY
    assert isinstance(err, OSError)
