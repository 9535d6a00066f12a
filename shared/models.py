"""
Data models for projects, demos and the stored credential.

The filesystem is the only source of truth; these are snapshots built per
request by the registry and the credential store.
"""

from dataclasses import dataclass, asdict, fields
from typing import Dict, Optional, Any
from datetime import datetime


@dataclass
class Project:
    """
    A directory under the music root holding demo files.

    Attributes:
        name: Directory name
        latest_demo_mtime: Highest modification time of its demos, epoch millis (0 if none)
        has_demos: Whether at least one .wav file is present
        readable: False if the directory could not be listed
        note: Note stored when the project was created (optional)
    """
    name: str
    latest_demo_mtime: int = 0
    has_demos: bool = False
    readable: bool = True
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Demo:
    """
    A single .wav file inside a project.

    Attributes:
        name: Filename on disk
        display_name: Filename without extension
        mtime_ms: Modification time, epoch millis
        modified_label: Human readable modification time
        size: Size in bytes
    """
    name: str
    display_name: str
    mtime_ms: int
    modified_label: str
    size: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def format_mtime(mtime_ms: int) -> str:
        """Format like "Oct 7, 2026, 09:41 PM" in local time."""
        moment = datetime.fromtimestamp(mtime_ms / 1000)
        return f"{moment:%b} {moment.day}, {moment:%Y}, {moment:%I:%M %p}"


@dataclass
class CredentialRecord:
    """
    The single stored password hash.

    Serialized to credentials.json; salt and hash are hex encoded.
    """
    salt: str
    iterations: int
    digest: str
    hash: str
    created_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CredentialRecord':
        """Create record from dictionary, filtering unknown keys."""
        field_names = {f.name for f in fields(cls)}
        filtered_data = {k: v for k, v in data.items() if k in field_names}
        return cls(**filtered_data)
