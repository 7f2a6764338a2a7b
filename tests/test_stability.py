"""Tests for write-completion detection."""
import pytest

from scanner_bot.core.exceptions import FileVanishedError, StabilityTimeoutError
from scanner_bot.core.stability import wait_until_stable


class FakeClock:
    """Virtual time advanced only by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.on_tick = None

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.now += seconds
        if self.on_tick:
            self.on_tick(self.now)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.mark.asyncio
async def test_constant_file_is_stable_after_threshold(tmp_path, clock):
    path = tmp_path / "scan.pdf"
    path.write_bytes(b"x" * 100)

    size = await wait_until_stable(path, threshold=10, poll_interval=1, max_wait=300,
                                   clock=clock, sleep=clock.sleep)

    assert size == 100
    assert clock.now == pytest.approx(10)


@pytest.mark.asyncio
async def test_growing_file_waits_full_threshold_after_last_change(tmp_path, clock):
    path = tmp_path / "scan.pdf"
    path.write_bytes(b"x")

    def grow(now):
        # Scanner keeps writing in bursts until t=7
        if now in (3, 5, 7):
            with path.open("ab") as fh:
                fh.write(b"y" * 10)

    clock.on_tick = grow
    size = await wait_until_stable(path, threshold=10, poll_interval=1, max_wait=300,
                                   clock=clock, sleep=clock.sleep)

    assert size == 31
    assert clock.now >= 7 + 10


@pytest.mark.asyncio
async def test_zero_byte_file_never_stabilizes(tmp_path, clock):
    path = tmp_path / "placeholder.pdf"
    path.write_bytes(b"")

    with pytest.raises(StabilityTimeoutError) as exc_info:
        await wait_until_stable(path, threshold=10, poll_interval=1, max_wait=60,
                                clock=clock, sleep=clock.sleep)

    assert exc_info.value.last_size == 0
    assert clock.now >= 60


@pytest.mark.asyncio
async def test_constantly_changing_file_times_out(tmp_path, clock):
    path = tmp_path / "slow.pdf"
    path.write_bytes(b"x")

    def grow(now):
        with path.open("ab") as fh:
            fh.write(b"y")

    clock.on_tick = grow
    with pytest.raises(StabilityTimeoutError):
        await wait_until_stable(path, threshold=10, poll_interval=1, max_wait=30,
                                clock=clock, sleep=clock.sleep)


@pytest.mark.asyncio
async def test_vanishing_file_raises_not_found(tmp_path, clock):
    path = tmp_path / "scan.pdf"
    path.write_bytes(b"x" * 10)

    def remove(now):
        if now == 2:
            path.unlink()

    clock.on_tick = remove
    with pytest.raises(FileVanishedError) as exc_info:
        await wait_until_stable(path, threshold=10, poll_interval=1, max_wait=300,
                                clock=clock, sleep=clock.sleep)
    assert exc_info.value.file_path == path


@pytest.mark.asyncio
async def test_missing_file_raises_immediately(tmp_path, clock):
    with pytest.raises(FileVanishedError):
        await wait_until_stable(tmp_path / "nope.pdf", clock=clock, sleep=clock.sleep)
    assert clock.now == 0


@pytest.mark.asyncio
async def test_real_sleep_with_short_threshold(tmp_path):
    path = tmp_path / "scan.png"
    path.write_bytes(b"png")
    assert await wait_until_stable(path, threshold=0.05, poll_interval=0.01, max_wait=2) == 3
