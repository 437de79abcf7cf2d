"""Tests for the internal error sink."""

import logging

from sqlogger.error_sink import ErrorSink


class TestErrorSink:
    """Tests for ErrorSink."""

    def test_line_format(self, tmp_path):
        """Test '<timestamp> [ERROR] <message>' lines."""
        sink = ErrorSink(tmp_path / "errors.txt")

        sink.write("first")
        sink.write("second")

        lines = sink.read_lines()
        assert len(lines) == 2
        assert lines[0].endswith(" [ERROR] first")
        assert lines[0][4] == "-" and lines[0][13] == ":"

    def test_rotation(self, tmp_path):
        """Test that an oversized file is started over."""
        path = tmp_path / "errors.txt"
        sink = ErrorSink(path, max_bytes=100)

        for i in range(10):
            sink.write(f"message number {i}")

        assert path.stat().st_size <= 200
        assert sink.read_lines()[-1].endswith("message number 9")

    def test_creates_parent_directory(self, tmp_path):
        """Test writing into a missing directory."""
        sink = ErrorSink(tmp_path / "a" / "b" / "errors.txt")
        sink.write("x")

        assert sink.read_lines()

    def test_mirrors_to_logging(self, tmp_path, caplog):
        """Test that failures also reach stdlib logging."""
        sink = ErrorSink(tmp_path / "errors.txt")

        with caplog.at_level(logging.ERROR, logger="sqlogger.error_sink"):
            sink.write("visible")

        assert "visible" in caplog.text

    def test_unwritable_path_does_not_raise(self, tmp_path):
        """Test that I/O failures are swallowed into a warning."""
        blocker = tmp_path / "file"
        blocker.write_text("x")
        sink = ErrorSink(blocker / "errors.txt")

        sink.write("lost")

        assert sink.read_lines() == []
