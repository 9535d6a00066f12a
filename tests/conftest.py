import os
from pathlib import Path

import pytest

from shared.crypto import CredentialStore
from station.api import StationServices, create_app
from station.config import StationConfig
from station.registry import ProjectRegistry

PASSWORD = "correct horse battery"
LAN_ADDR = "192.168.1.20"
REMOTE_ADDR = "203.0.113.7"


def write_demo(path: Path, data: bytes = b"RIFF\x00\x00\x00\x00WAVE", mtime: float = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def music_dir(tmp_path):
    root = tmp_path / "music"
    root.mkdir()
    return root


@pytest.fixture
def registry(music_dir):
    return ProjectRegistry(music_dir)


@pytest.fixture
def services(tmp_path, music_dir):
    config = StationConfig(music_dir=music_dir, data_dir=tmp_path / "data", watch=False)
    services = StationServices(config)
    # Cheap derivations keep the suite fast; the algorithm is unchanged
    services.credentials = CredentialStore(config.data_dir, iterations=1000)
    yield services
    services.shutdown()


@pytest.fixture
def app(services):
    app = create_app(services=services)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def authed_client(client):
    """A LAN client that has completed first-time setup."""
    resp = client.post("/api/auth/setup", json={"password": PASSWORD},
                       environ_base={"REMOTE_ADDR": LAN_ADDR})
    assert resp.status_code == 201
    return client
