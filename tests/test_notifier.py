from watchdog.events import (
    DirCreatedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from station.notifier import ChangeNotifier
from station.watcher import LibraryWatcher, MusicFolderHandler


def test_stream_sends_connected_then_reload():
    notifier = ChangeNotifier(keepalive=5)
    client = notifier.connect()
    stream = notifier.stream(client)

    assert next(stream) == "data: connected\n\n"
    assert notifier.client_count == 1

    notifier.notify_changed()
    assert next(stream) == "data: reload\n\n"

    stream.close()
    assert notifier.client_count == 0


def test_broadcast_reaches_every_client():
    notifier = ChangeNotifier(keepalive=5)
    streams = [notifier.stream(notifier.connect()) for _ in range(3)]
    for stream in streams:
        assert next(stream) == "data: connected\n\n"

    assert notifier.broadcast() == 3
    for stream in streams:
        assert next(stream) == "data: reload\n\n"


def test_idle_stream_sends_keepalive():
    notifier = ChangeNotifier(keepalive=0.01)
    stream = notifier.stream(notifier.connect())
    next(stream)
    assert next(stream).startswith(":")


def test_close_all_ends_streams():
    notifier = ChangeNotifier(keepalive=5)
    stream = notifier.stream(notifier.connect())
    next(stream)
    notifier.close_all()
    assert list(stream) == []
    assert notifier.client_count == 0


def _handler(root, calls):
    return MusicFolderHandler(root, lambda: calls.append(1), debounce_delay=0)


def test_handler_signals_project_and_file_events(tmp_path):
    calls = []
    handler = _handler(tmp_path, calls)

    handler.dispatch(DirCreatedEvent(str(tmp_path / "Demo A")))
    handler.dispatch(FileCreatedEvent(str(tmp_path / "Demo A" / "take.wav")))
    handler.dispatch(FileModifiedEvent(str(tmp_path / "Demo A" / "take.wav")))
    handler.dispatch(FileDeletedEvent(str(tmp_path / "Demo A" / "take.wav")))
    handler.dispatch(FileMovedEvent(str(tmp_path / "Demo A" / "a.wav"), str(tmp_path / "Demo A" / "b.wav")))
    assert len(calls) == 5


def test_handler_ignores_deep_and_outside_events(tmp_path):
    calls = []
    handler = _handler(tmp_path / "music", calls)

    handler.dispatch(FileCreatedEvent(str(tmp_path / "music" / "p" / "sub" / "deep.wav")))
    handler.dispatch(FileCreatedEvent(str(tmp_path / "elsewhere.wav")))
    handler.dispatch(FileClosedEvent(str(tmp_path / "music" / "p" / "take.wav")))
    assert calls == []


def test_handler_debounces_bursts(tmp_path):
    calls = []
    handler = MusicFolderHandler(tmp_path, lambda: calls.append(1), debounce_delay=60)
    for i in range(5):
        handler.dispatch(FileCreatedEvent(str(tmp_path / "p" / f"{i}.wav")))
    assert handler.debounce_timer is not None
    assert calls == []
    handler.cancel()
    assert handler.debounce_timer is None


def test_watcher_feeds_notifier(tmp_path):
    notifier = ChangeNotifier(keepalive=5)
    stream = notifier.stream(notifier.connect())
    next(stream)

    watcher = LibraryWatcher(tmp_path, notifier.notify_changed, debounce_delay=0)
    watcher.handler.dispatch(FileCreatedEvent(str(tmp_path / "p" / "take.wav")))
    assert next(stream) == "data: reload\n\n"
    assert not watcher.running
