"""Tests for pwrite-up console rendering."""
import pytest
from rich.console import Console

from parallel_uploader import cli_progress
from parallel_uploader.cli_progress import StreamProgressDisplay, format_bytes, render_configuration_summary
from parallel_uploader.models import UploadConfig
from parallel_uploader.orchestrator.planner import plan


@pytest.fixture
def recorded(monkeypatch):
    console = Console(record=True, width=120, force_terminal=False)
    monkeypatch.setattr(cli_progress, "console", console)
    return console


@pytest.mark.parametrize(
    "count,expected",
    [(0, "0 B"), (1023, "1023 B"), (1024, "1.00 KiB"), (4 * 1024 * 1024, "4.00 MiB"), (3 * 1024 ** 5, "3072.00 TiB")],
)
def test_format_bytes(count, expected):
    assert format_bytes(count) == expected


def test_every_stream_has_a_bar_before_any_progress(tmp_path):
    source = tmp_path / "tiny.bin"
    source.write_bytes(b"ab")
    ranges = plan(2, 5)

    display = StreamProgressDisplay(source, ranges)
    with display:
        tasks = {task.fields["label"].strip(): task.total for task in display._progress.tasks}

    assert tasks == {
        "tiny.bin": 2,
        "stream 0": 0,
        "stream 1": 0,
        "stream 2": 0,
        "stream 3": 0,
        "stream 4": 2,
    }


def test_update_moves_stream_and_total(tmp_path):
    source = tmp_path / "f.bin"
    source.write_bytes(bytes(100))

    display = StreamProgressDisplay(source, plan(100, 2))
    with display:
        display.get_callback()(0, 20, 50)
        display.get_callback()(1, 50, 50)
        completed = [task.completed for task in display._progress.tasks]

    assert completed == [70, 20, 50]


def test_disabled_display_creates_nothing(tmp_path):
    source = tmp_path / "f.bin"
    source.write_bytes(bytes(10))

    display = StreamProgressDisplay(source, plan(10, 2), enabled=False)
    with display:
        display.update(0, 5, 5)

    assert display._progress.tasks == []


def test_summary_shows_split(tmp_path, recorded):
    source = tmp_path / "big.bin"
    source.write_bytes(bytes(4 * 1024 + 3))

    render_configuration_summary(
        source,
        "/tempZone/home/rods/big.bin",
        "http://irods.test/api",
        "rods",
        UploadConfig(stream_count=4, buffer_size=1024),
    )

    text = recorded.export_text()
    assert "/tempZone/home/rods/big.bin" in text
    assert "rods @ http://irods.test/api" in text
    assert "4 x 1.00 KiB (+3 B on the last)" in text
    assert "off" in text
