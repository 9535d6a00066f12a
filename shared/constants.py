"""
Shared constants used across the station.
"""

# Demo files
DEMO_EXTENSION = ".wav"
PROJECT_NOTE_FILENAME = "project.json"

# Filenames may only contain these characters; anything else becomes "_"
SAFE_FILENAME_PATTERN = r"[^A-Za-z0-9._-]"

# Mimetypes for the file streamer
AUDIO_MIMETYPES = {
    ".wav": "audio/wav",
}
FALLBACK_MIMETYPE = "application/octet-stream"

# Streaming
DEFAULT_STREAM_CHUNK_SIZE = 64 * 1024  # bytes

# Credentials
CREDENTIALS_FILENAME = "credentials.json"
MIN_PASSWORD_LENGTH = 8
KDF_ITERATIONS = 210000
KDF_DIGEST = "sha512"
KDF_SALT_BYTES = 16
KDF_KEY_LENGTH = 64  # bytes

# Sessions
SESSION_COOKIE_NAME = "demohub_session"
SESSION_TOKEN_BYTES = 32
DEFAULT_SESSION_MAX_AGE = 30 * 24 * 3600  # seconds

# Login throttle: per client address
LOGIN_ATTEMPT_LIMIT = 10
LOGIN_ATTEMPT_WINDOW_SEC = 60

# Push channel
EVENTS_KEEPALIVE_SEC = 15
WATCH_DEBOUNCE_SEC = 0.25
WATCH_MAX_DEPTH = 2  # root -> project dir -> file

# Configuration paths
DEFAULT_DATA_DIR = "~/.config/demohub"
DEFAULT_MUSIC_DIR = "music"

# Network Settings
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3119
DEFAULT_MAX_UPLOAD_MB = 2048
