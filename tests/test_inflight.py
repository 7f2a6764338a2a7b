"""Tests for the per-path in-flight registry."""
import threading
from concurrent.futures import ThreadPoolExecutor

from scanner_bot.core.inflight import InFlightSet


def test_second_claim_is_refused_until_release(tmp_path):
    inflight = InFlightSet()
    path = tmp_path / "scan.pdf"

    assert inflight.try_claim(path)
    assert not inflight.try_claim(path)
    assert path in inflight

    inflight.release(path)
    assert path not in inflight
    assert inflight.try_claim(path)


def test_release_of_unknown_path_is_noop(tmp_path):
    inflight = InFlightSet()
    inflight.release(tmp_path / "never-claimed.pdf")
    assert len(inflight) == 0


def test_str_and_path_share_a_key(tmp_path):
    inflight = InFlightSet()
    path = tmp_path / "scan.pdf"
    assert inflight.try_claim(str(path))
    assert not inflight.try_claim(path)


def test_concurrent_duplicate_claims_admit_exactly_one(tmp_path):
    inflight = InFlightSet()
    path = tmp_path / "scan.pdf"
    barrier = threading.Barrier(32)

    def claim():
        barrier.wait()
        return inflight.try_claim(path)

    with ThreadPoolExecutor(max_workers=32) as pool:
        results = list(pool.map(lambda _: claim(), range(32)))

    assert results.count(True) == 1
    assert len(inflight) == 1


def test_claimed_context_manager_releases_on_error(tmp_path):
    inflight = InFlightSet()
    path = tmp_path / "scan.pdf"

    try:
        with inflight.claimed(path) as acquired:
            assert acquired
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    assert path not in inflight


def test_claimed_does_not_release_someone_elses_claim(tmp_path):
    inflight = InFlightSet()
    path = tmp_path / "scan.pdf"
    inflight.try_claim(path)

    with inflight.claimed(path) as acquired:
        assert not acquired

    assert path in inflight
