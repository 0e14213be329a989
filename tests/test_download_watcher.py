import asyncio
from pathlib import Path

from app.scraper.download_watcher import snapshot, wait_for_download


def _growing_file_sleep(path: Path, sizes: list[int], calls: list[float]):
    async def _sleep(seconds: float) -> None:
        calls.append(seconds)
        if len(calls) < len(sizes):
            path.write_bytes(b"x" * sizes[len(calls)])

    return _sleep


def test_returns_file_after_three_equal_readings(tmp_path: Path) -> None:
    target = tmp_path / "FIR_report.pdf"
    sizes = [100, 250, 250, 250]
    target.write_bytes(b"x" * sizes[0])
    calls: list[float] = []

    result = asyncio.run(
        wait_for_download(
            tmp_path,
            frozenset(),
            timeout=10,
            poll_interval=1,
            stable_checks=3,
            sleep=_growing_file_sleep(target, sizes, calls),
        )
    )

    assert result == "FIR_report.pdf"
    # Four polls, with a sleep between each of them.
    assert len(calls) == 3


def test_ignores_files_present_before_the_trigger(tmp_path: Path) -> None:
    (tmp_path / "old.pdf").write_bytes(b"x" * 10)
    before = snapshot(tmp_path)
    calls: list[float] = []

    async def _sleep(seconds: float) -> None:
        calls.append(seconds)

    result = asyncio.run(
        wait_for_download(tmp_path, before, timeout=5, poll_interval=1, sleep=_sleep)
    )

    assert result is None
    assert len(calls) == 5


def test_ignores_partial_download_suffixes(tmp_path: Path) -> None:
    (tmp_path / "report.pdf.crdownload").write_bytes(b"x" * 10)

    async def _sleep(_seconds: float) -> None:
        return None

    result = asyncio.run(
        wait_for_download(tmp_path, frozenset(), timeout=3, poll_interval=1, sleep=_sleep)
    )

    assert result is None


def test_missing_directory_is_not_an_error(tmp_path: Path) -> None:
    directory = tmp_path / "not-yet"
    calls: list[float] = []

    async def _sleep(seconds: float) -> None:
        calls.append(seconds)
        if len(calls) == 1:
            directory.mkdir()
            (directory / "late.pdf").write_bytes(b"x" * 64)

    result = asyncio.run(
        wait_for_download(directory, frozenset(), timeout=10, poll_interval=1, sleep=_sleep)
    )

    assert result == "late.pdf"


def test_zero_byte_file_never_counts_as_settled(tmp_path: Path) -> None:
    (tmp_path / "empty.pdf").write_bytes(b"")

    async def _sleep(_seconds: float) -> None:
        return None

    result = asyncio.run(
        wait_for_download(tmp_path, frozenset(), timeout=6, poll_interval=1, sleep=_sleep)
    )

    assert result is None


def test_snapshot_of_missing_directory_is_empty(tmp_path: Path) -> None:
    assert snapshot(tmp_path / "missing") == frozenset()
