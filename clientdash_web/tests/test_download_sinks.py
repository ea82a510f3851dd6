from __future__ import annotations

from pathlib import Path

import pytest

from clientdash_web.adapters.download_sinks import DirectoryDownloadSink, MemoryDownloadSink


def test_memory_sink_keeps_last_delivery():
    sink = MemoryDownloadSink()
    assert sink.filename is None

    sink.deliver("Acme_2024-03-15.pdf", b"%PDF")

    assert (sink.filename, sink.content) == ("Acme_2024-03-15.pdf", b"%PDF")


def test_directory_sink_writes_file_and_no_leftovers(tmp_path: Path):
    sink = DirectoryDownloadSink(downloads_dir=tmp_path / "pdfs")

    sink.deliver("Acme_2024-03-15.pdf", b"%PDF-1.4 one")
    sink.deliver("Acme_2024-03-15.pdf", b"%PDF-1.4 two")

    assert sink.path_for("Acme_2024-03-15.pdf").read_bytes() == b"%PDF-1.4 two"
    assert [p.name for p in (tmp_path / "pdfs").iterdir()] == ["Acme_2024-03-15.pdf"]


def test_directory_sink_strips_directories_from_filename(tmp_path: Path):
    sink = DirectoryDownloadSink(downloads_dir=tmp_path)

    sink.deliver("../escape.pdf", b"x")

    assert (tmp_path / "escape.pdf").exists()
    assert not (tmp_path.parent / "escape.pdf").exists()


def test_directory_sink_cleans_up_on_failure(tmp_path: Path, monkeypatch):
    sink = DirectoryDownloadSink(downloads_dir=tmp_path)

    def boom(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("clientdash_web.adapters.download_sinks.os.replace", boom)

    with pytest.raises(OSError):
        sink.deliver("report.pdf", b"data")

    assert list(tmp_path.iterdir()) == []
