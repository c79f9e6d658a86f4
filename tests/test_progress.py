import pytest

from recorder_backup.transcoding.progress import (
    EtaEstimator,
    durations_near_uniform,
    format_eta,
    read_progress,
)

from conftest import FakeClock


@pytest.mark.parametrize("durations, expected", [
    ([10, 10, 11, 9], True),
    ([10, 400, 5, 3], False),
    ([600, 612, 590], False),
    ([600, 610, 605], True),
    ([], True),
])
def test_durations_near_uniform(durations, expected):
    assert durations_near_uniform(durations) is expected


def test_model_chosen_up_front():
    assert EtaEstimator([10, 10, 11, 9]).model == "per-file"
    assert EtaEstimator([10, 400, 5, 3]).model == "workload"


def test_read_progress_takes_latest_values(tmp_path):
    p = tmp_path / "progress.txt"
    p.write_text(
        "out_time_us=1000000\nspeed=0.5x\nprogress=continue\n"
        "out_time_ms=4500000\nout_time=00:00:04.500000\nspeed=1.5x\nprogress=end\n"
    )
    snap = read_progress(p)
    assert snap.out_time_seconds == pytest.approx(4.5)
    assert snap.speed == "1.5x"
    assert snap.finished is True


def test_read_progress_tolerates_garbage_and_missing(tmp_path):
    p = tmp_path / "progress.txt"
    p.write_text("out_time_us=N/A\nspeed=N/A\nnonsense\nout_ti")
    snap = read_progress(p)
    assert snap.out_time_seconds == 0.0
    assert snap.speed is None
    assert snap.finished is False

    assert read_progress(tmp_path / "missing.txt").out_time_seconds == 0.0


def test_per_file_estimate():
    clock = FakeClock()
    eta = EtaEstimator([10, 10, 10, 10], clock=clock)
    eta.start()
    assert eta.update(0, 10) is None

    clock.now += 20
    # 2 of 4 files done in 20s -> 20s to go
    eta.file_done(10)
    assert eta.file_done(10) == pytest.approx(20.0)
    assert eta.percent() == pytest.approx(50.0)


def test_workload_estimate():
    clock = FakeClock()
    eta = EtaEstimator([100, 300], clock=clock)
    eta.start()
    clock.now += 50
    # 100s of media in 50s -> 2x; 300s left -> 150s
    assert eta.file_done(100) == pytest.approx(150.0)
    assert eta.percent(150, 300) == pytest.approx(62.5)


def test_displayed_eta_counts_down_between_files():
    clock = FakeClock()
    eta = EtaEstimator([100, 300], tick_seconds=1.0, clock=clock)
    eta.start()

    shown = []
    for second in range(1, 11):
        clock.now += 1
        shown.append(eta.update(second * 4, 100))

    assert all(b <= a for a, b in zip(shown, shown[1:]))
    assert shown[0] - shown[-1] == pytest.approx(9.0)

    clock.now += 15
    fresh = eta.file_done(100)
    assert eta.displayed == fresh


def test_countdown_never_goes_negative():
    clock = FakeClock()
    eta = EtaEstimator([10, 10], tick_seconds=5.0, clock=clock)
    eta.start()
    clock.now += 1
    eta.update(5, 10)
    for _ in range(20):
        assert eta.update(5, 10) >= 0.0


def test_format_eta():
    assert format_eta(None) == "--:--:--"
    assert format_eta(3725.4) == "1:02:05"
    assert format_eta(0) == "0:00:00"
