import io
import json
import os

import pytest

from conftest import write_demo
from shared.constants import PROJECT_NOTE_FILENAME
from shared.errors import (
    AlreadyExists,
    HasDemos,
    InvalidPath,
    NameRequired,
    NotFound,
    UnsupportedType,
)
from station.registry import sanitize_filename, sanitize_project_name


def test_sanitize_project_name():
    assert sanitize_project_name("  Demo A  ") == "Demo A"
    assert sanitize_project_name("a/b\\c") == "abc"
    assert sanitize_project_name(" / ") == ""
    assert sanitize_project_name(None) == ""


def test_sanitize_filename():
    assert sanitize_filename("My Song (v2).wav") == "My_Song__v2_.wav"
    assert sanitize_filename("../../etc/passwd") == ".._.._etc_passwd"
    assert sanitize_filename("..") == ""
    assert sanitize_filename("") == ""


def test_list_projects_orders_by_freshness_then_name(registry, music_dir):
    write_demo(music_dir / "p1" / "a.wav", mtime=3000)
    write_demo(music_dir / "gamma" / "b.wav", mtime=1000)
    write_demo(music_dir / "beta" / "c.wav", mtime=1000)
    (music_dir / "empty").mkdir()
    (music_dir / "stray.wav").write_bytes(b"x")

    projects = registry.list_projects()
    assert [p.name for p in projects] == ["p1", "beta", "gamma", "empty"]
    assert projects[0].latest_demo_mtime == 3000 * 1000
    assert projects[0].has_demos
    assert not projects[-1].has_demos
    assert projects[-1].latest_demo_mtime == 0


def test_list_projects_ignores_non_wav_files(registry, music_dir):
    write_demo(music_dir / "mixed" / "notes.txt", mtime=9000)
    write_demo(music_dir / "mixed" / "TAKE.WAV", mtime=2000)

    [project] = registry.list_projects()
    assert project.has_demos
    assert project.latest_demo_mtime == 2000 * 1000


def test_unreadable_project_does_not_abort_listing(registry, music_dir, monkeypatch, caplog):
    write_demo(music_dir / "good" / "a.wav", mtime=1000)
    (music_dir / "locked").mkdir()

    real_scandir = os.scandir

    def fake_scandir(path):
        if os.path.basename(str(path)) == "locked":
            raise PermissionError("denied")
        return real_scandir(path)

    monkeypatch.setattr("station.registry.os.scandir", fake_scandir)
    with caplog.at_level("WARNING", logger="station.registry"):
        projects = registry.list_projects()

    by_name = {p.name: p for p in projects}
    assert by_name["good"].has_demos
    assert not by_name["locked"].readable
    assert not by_name["locked"].has_demos
    assert "locked" in caplog.text


def test_list_demos(registry, music_dir):
    write_demo(music_dir / "Demo A" / "old.wav", mtime=1000)
    write_demo(music_dir / "Demo A" / "new.WAV", mtime=2000)
    write_demo(music_dir / "Demo A" / "cover.png", mtime=3000)

    demos = registry.list_demos("Demo A")
    assert [d.name for d in demos] == ["new.WAV", "old.wav"]
    assert demos[0].display_name == "new"
    assert demos[0].mtime_ms == 2000 * 1000
    assert demos[0].modified_label


def test_list_demos_missing_project(registry):
    with pytest.raises(NotFound):
        registry.list_demos("nope")


def test_create_project_writes_note(registry, music_dir):
    name = registry.create_project("  Demo A ", "  first ideas  ")
    assert name == "Demo A"
    record = json.loads((music_dir / "Demo A" / PROJECT_NOTE_FILENAME).read_text())
    assert record["note"] == "first ideas"
    assert registry.read_note("Demo A") == "first ideas"


def test_create_project_errors(registry):
    with pytest.raises(NameRequired):
        registry.create_project("  //  ")
    registry.create_project("Demo A")
    with pytest.raises(AlreadyExists):
        registry.create_project("Demo A")
    with pytest.raises(InvalidPath):
        registry.create_project("..")


def test_rename_project(registry, music_dir):
    registry.create_project("Demo A")
    registry.create_project("Demo B")

    with pytest.raises(NameRequired):
        registry.rename_project("Demo A", "   ")
    with pytest.raises(NotFound):
        registry.rename_project("Missing", "Other")
    with pytest.raises(AlreadyExists):
        registry.rename_project("Demo A", "Demo B")

    assert registry.rename_project("Demo A", " Demo/C ") == "DemoC"
    assert (music_dir / "DemoC").is_dir()
    assert not (music_dir / "Demo A").exists()


def test_delete_project_with_demos_is_refused(registry, music_dir):
    write_demo(music_dir / "Demo A" / "take.wav")
    with pytest.raises(HasDemos):
        registry.delete_project("Demo A")
    assert (music_dir / "Demo A" / "take.wav").is_file()


def test_delete_empty_project(registry, music_dir):
    registry.create_project("Demo A", "note")
    (music_dir / "Demo A" / "lyrics.txt").write_text("la la")
    registry.delete_project("Demo A")
    assert not (music_dir / "Demo A").exists()
    with pytest.raises(NotFound):
        registry.delete_project("Demo A")


def test_upload_demo(registry, music_dir):
    saved = registry.upload_demo("New Project", "My Take.WAV", io.BytesIO(b"data"))
    assert saved == "My_Take.WAV"
    assert (music_dir / "New Project" / "My_Take.WAV").read_bytes() == b"data"


def test_upload_rejects_other_types(registry, music_dir):
    with pytest.raises(UnsupportedType):
        registry.upload_demo("Demo A", "song.mp3", io.BytesIO(b"data"))
    with pytest.raises(UnsupportedType):
        registry.upload_demo("Demo A", None, io.BytesIO(b"data"))
    assert not (music_dir / "Demo A").exists()


def test_upload_strips_client_directories(registry, music_dir):
    saved = registry.upload_demo("Demo A", "../../evil.wav", io.BytesIO(b"data"))
    assert saved == "evil.wav"
    assert (music_dir / "Demo A" / "evil.wav").is_file()


def test_rename_demo(registry, music_dir):
    write_demo(music_dir / "Demo A" / "track.wav")
    write_demo(music_dir / "Demo A" / "other.wav")

    assert registry.rename_demo("Demo A", "track.wav", "final") == "final.wav"
    assert (music_dir / "Demo A" / "final.wav").is_file()

    with pytest.raises(NameRequired):
        registry.rename_demo("Demo A", "final.wav", "")
    with pytest.raises(NotFound):
        registry.rename_demo("Demo A", "missing.wav", "x")
    with pytest.raises(AlreadyExists):
        registry.rename_demo("Demo A", "final.wav", "other.wav")


def test_delete_demo(registry, music_dir):
    write_demo(music_dir / "Demo A" / "take.wav")
    registry.delete_demo("Demo A", "take.wav")
    assert not (music_dir / "Demo A" / "take.wav").exists()
    with pytest.raises(NotFound):
        registry.delete_demo("Demo A", "take.wav")


def test_rename_and_delete_leave_non_demo_files_alone(registry, music_dir):
    registry.create_project("Demo A", "keep me")
    note = music_dir / "Demo A" / PROJECT_NOTE_FILENAME

    with pytest.raises(NotFound):
        registry.rename_demo("Demo A", PROJECT_NOTE_FILENAME, "hijack")
    with pytest.raises(NotFound):
        registry.delete_demo("Demo A", PROJECT_NOTE_FILENAME)

    assert note.is_file()
    assert not (music_dir / "Demo A" / "hijack.wav").exists()
    assert registry.read_note("Demo A") == "keep me"
    registry.delete_project("Demo A")


@pytest.mark.parametrize("project,filename", [
    ("../../etc", "passwd"),
    ("..", "passwd"),
    ("Demo A", "../../etc/passwd"),
    ("Demo A", ".."),
    ("Demo A", "/etc/passwd"),
    ("/etc", "passwd"),
])
def test_traversal_is_rejected(registry, music_dir, tmp_path, project, filename):
    outside = write_demo(tmp_path / "etc" / "passwd", b"root:x:0:0")
    write_demo(music_dir / "Demo A" / "take.wav")

    with pytest.raises(InvalidPath):
        registry.demo_path(project, filename)
    with pytest.raises(InvalidPath):
        registry.delete_demo(project, filename)
    with pytest.raises(InvalidPath):
        registry.rename_demo(project, filename, "x")
    assert outside.read_bytes() == b"root:x:0:0"
