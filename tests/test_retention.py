import os
import time

import pytest

from recorder_backup.retention.sweeper import RetentionSweeper, is_affirmative

DAY = 86400


def age(path, days, now):
    path.parent.mkdir(parents=True, exist_ok=True)
    if not path.exists():
        path.write_bytes(b"x" * 10)
    t = now - days * DAY
    os.utime(path, (t, t))
    return path


@pytest.fixture
def now():
    return time.time()


def test_auto_sweep_deletes_old_file_and_prunes_folder(tmp_path, now):
    old = age(tmp_path / "2024" / "old.mp4", 100, now)
    fresh = age(tmp_path / "2025" / "new.mp4", 5, now)

    result = RetentionSweeper(now=lambda: now).sweep(tmp_path, 60, mode="auto")

    assert result.deleted == 1
    assert result.pruned_dirs == 1
    assert not old.exists()
    assert not (tmp_path / "2024").exists()
    assert fresh.exists()
    assert tmp_path.exists()


def test_prompt_declined_deletes_nothing(tmp_path, now):
    old = age(tmp_path / "a" / "old.mp4", 100, now)
    questions = []

    def confirm(question):
        questions.append(question)
        return "n"

    result = RetentionSweeper(confirm=confirm, now=lambda: now).sweep(tmp_path, 60, mode="prompt")

    assert (result.deleted, result.pruned_dirs) == (0, 0)
    assert result.candidates == 1
    assert old.exists()
    assert len(questions) == 1


def test_prompt_accepts_localized_yes(tmp_path, now):
    age(tmp_path / "old.mov", 90, now)
    result = RetentionSweeper(confirm=lambda q: " Sí ", now=lambda: now).sweep(tmp_path, 60)
    assert result.deleted == 1


def test_no_candidates_does_not_prompt(tmp_path, now):
    age(tmp_path / "new.mp4", 1, now)

    def confirm(question):
        pytest.fail("should not ask when nothing is old enough")

    result = RetentionSweeper(confirm=confirm, now=lambda: now).sweep(tmp_path, 60)
    assert result.candidates == 0


def test_only_videos_are_swept(tmp_path, now):
    note = age(tmp_path / "notes.txt", 400, now)
    RetentionSweeper(now=lambda: now).sweep(tmp_path, 60, mode="auto")
    assert note.exists()


def test_retention_days_clamped_to_one(tmp_path, now):
    half_day = age(tmp_path / "recent.mp4", 0.5, now)
    two_days = age(tmp_path / "older.mp4", 2, now)

    result = RetentionSweeper(now=lambda: now).sweep(tmp_path, 0, mode="auto")

    assert result.deleted == 1
    assert half_day.exists()
    assert not two_days.exists()


def test_missing_root(tmp_path):
    result = RetentionSweeper().sweep(tmp_path / "nope", 60, mode="auto")
    assert result.candidates == 0


def test_unknown_mode_rejected(tmp_path, now):
    age(tmp_path / "old.mp4", 100, now)
    with pytest.raises(ValueError):
        RetentionSweeper(now=lambda: now).sweep(tmp_path, 60, mode="sometimes")


def test_prune_keeps_non_empty_and_root(tmp_path):
    (tmp_path / "a" / "b").mkdir(parents=True)
    (tmp_path / "c").mkdir()
    (tmp_path / "c" / "keep.txt").write_text("x")

    assert RetentionSweeper().prune_empty_dirs(tmp_path) == 2
    assert not (tmp_path / "a").exists()
    assert (tmp_path / "c").exists()


@pytest.mark.parametrize("answer, expected", [
    ("y", True), ("YES", True), ("si", True), ("oui", True),
    ("", False), ("n", False), (None, False), ("maybe", False),
])
def test_is_affirmative(answer, expected):
    assert is_affirmative(answer) is expected
