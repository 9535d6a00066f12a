"""
Project and demo registry.

Projects are the immediate subdirectories of the music root and demos are the
.wav files inside them. Nothing is cached: every call reads the filesystem,
which is the only synchronization point between concurrent requests.
"""

import concurrent.futures
import json
import locale
import logging
import os
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, List, Optional

from shared.constants import DEMO_EXTENSION, PROJECT_NOTE_FILENAME, SAFE_FILENAME_PATTERN
from shared.errors import (
    AlreadyExists,
    HasDemos,
    InvalidPath,
    NameRequired,
    NotFound,
    UnsupportedType,
)
from shared.models import Demo, Project

logger = logging.getLogger(__name__)

_SAFE_FILENAME_RE = re.compile(SAFE_FILENAME_PATTERN)


def is_demo_filename(name: str) -> bool:
    return name.lower().endswith(DEMO_EXTENSION)


def sanitize_project_name(raw: Optional[str]) -> str:
    """Trim whitespace and drop path separators."""
    if not raw:
        return ""
    return raw.strip().replace("/", "").replace("\\", "").strip()


def sanitize_filename(raw: Optional[str]) -> str:
    """Reduce a filename to letters, digits, dot, dash and underscore."""
    if not raw:
        return ""
    name = _SAFE_FILENAME_RE.sub("_", raw.strip())
    if not name.strip("."):
        return ""
    return name


def _mtime_ms(stat_result: os.stat_result) -> int:
    return stat_result.st_mtime_ns // 1_000_000


def _within(parent: str, candidate: str) -> bool:
    """True if candidate is a strict descendant of parent (both normalized)."""
    try:
        return candidate != parent and os.path.commonpath([parent, candidate]) == parent
    except ValueError:
        return False


class ProjectRegistry:
    """Filesystem-backed store of projects and their demos."""

    def __init__(self, root: Path, max_workers: int = 8):
        self.root = Path(root).expanduser().absolute()
        self.max_workers = max_workers

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    # --- Path resolution ---

    def project_path(self, name: str) -> Path:
        """Resolve a project directory, rejecting anything outside the root."""
        root = os.path.normpath(str(self.root))
        target = os.path.normpath(os.path.join(root, name or ""))
        if not name or not _within(root, target):
            logger.warning("Rejected project path outside music root: %r", name)
            raise InvalidPath("Invalid project name")
        return Path(target)

    def demo_path(self, project: str, filename: str) -> Path:
        """Resolve a file inside a project, rejecting traversal."""
        project_dir = os.path.normpath(str(self.project_path(project)))
        target = os.path.normpath(os.path.join(project_dir, filename or ""))
        if not filename or not _within(project_dir, target):
            logger.warning("Rejected file path outside project %r: %r", project, filename)
            raise InvalidPath("Invalid file name")
        return Path(target)

    def _existing_project(self, name: str) -> Path:
        path = self.project_path(name)
        if not path.is_dir():
            raise NotFound(f"Project not found: {name}")
        return path

    # --- Listings ---

    def _scan_project(self, entry: os.DirEntry) -> Project:
        """Compute freshness for one project; unreadable directories count as empty."""
        project = Project(name=entry.name, note=self.read_note(entry.name))
        try:
            latest = 0
            with os.scandir(entry.path) as it:
                for child in it:
                    if child.is_file() and is_demo_filename(child.name):
                        project.has_demos = True
                        latest = max(latest, _mtime_ms(child.stat()))
            project.latest_demo_mtime = latest
        except OSError as e:
            logger.warning("Could not read project %s: %s", entry.name, e)
            project.readable = False
            project.has_demos = False
            project.latest_demo_mtime = 0
        return project

    def list_projects(self) -> List[Project]:
        """
        List all projects, freshest first.

        Projects are ordered by their newest demo (descending); ties, including
        projects without demos, are ordered by name.
        """
        self.ensure_root()
        with os.scandir(self.root) as it:
            entries = [e for e in it if e.is_dir()]

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            projects = list(executor.map(self._scan_project, entries))

        projects.sort(key=lambda p: (-p.latest_demo_mtime, locale.strxfrm(p.name.casefold()), p.name))
        return projects

    def _demo_from_stat(self, path: Path) -> Demo:
        st = path.stat()
        mtime_ms = _mtime_ms(st)
        return Demo(
            name=path.name,
            display_name=path.stem,
            mtime_ms=mtime_ms,
            modified_label=Demo.format_mtime(mtime_ms),
            size=st.st_size,
        )

    def list_demos(self, project: str) -> List[Demo]:
        """List a project's demos, newest first."""
        project_dir = self._existing_project(project)
        files = [p for p in project_dir.iterdir() if p.is_file() and is_demo_filename(p.name)]

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            demos = list(executor.map(self._demo_from_stat, files))

        demos.sort(key=lambda d: d.mtime_ms, reverse=True)
        return demos

    def has_demos(self, project: str) -> bool:
        project_dir = self._existing_project(project)
        return any(p.is_file() and is_demo_filename(p.name) for p in project_dir.iterdir())

    def project_exists(self, name: str) -> bool:
        return self.project_path(name).is_dir()

    def read_note(self, project: str) -> Optional[str]:
        """Return the note saved with the project, if any."""
        note_path = self.project_path(project) / PROJECT_NOTE_FILENAME
        try:
            with open(note_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable note for %s: %s", project, e)
            return None
        note = data.get("note") if isinstance(data, dict) else None
        return note or None

    # --- Project mutations ---

    def create_project(self, raw_name: Optional[str], note: Optional[str] = None) -> str:
        name = sanitize_project_name(raw_name)
        if not name:
            raise NameRequired("Project name is required")
        path = self.project_path(name)
        self.ensure_root()
        try:
            path.mkdir()
        except FileExistsError:
            raise AlreadyExists(f"Project already exists: {name}")

        record = {
            "note": (note or "").strip(),
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        with open(path / PROJECT_NOTE_FILENAME, "w", encoding="utf-8") as f:
            json.dump(record, f, indent=2)
        logger.info("Created project %s", name)
        return name

    def rename_project(self, current: str, raw_next: Optional[str]) -> str:
        next_name = sanitize_project_name(raw_next)
        if not next_name:
            raise NameRequired("Project name is required")
        source = self._existing_project(current)
        target = self.project_path(next_name)
        if target.exists():
            raise AlreadyExists(f"Project already exists: {next_name}")
        os.rename(source, target)
        logger.info("Renamed project %s -> %s", current, next_name)
        return next_name

    def delete_project(self, name: str) -> None:
        """Remove an empty project; demos are never deleted implicitly."""
        path = self._existing_project(name)
        if self.has_demos(name):
            raise HasDemos("Delete the demos in this project first")
        shutil.rmtree(path)
        logger.info("Deleted project %s", name)

    # --- Demo mutations ---

    def upload_name(self, filename: Optional[str]) -> str:
        """Validate a client supplied upload filename and return its on-disk name."""
        if not filename or not is_demo_filename(filename):
            raise UnsupportedType()
        safe_name = sanitize_filename(os.path.basename(filename.replace("\\", "/")))
        if not safe_name or not is_demo_filename(safe_name) or not safe_name[:-len(DEMO_EXTENSION)].strip("._"):
            raise NameRequired("File name is required")
        return safe_name

    def upload_demo(self, project: str, filename: Optional[str], stream: BinaryIO) -> str:
        """
        Store an uploaded .wav file under a project.

        Args:
            project: Project name (created if missing)
            filename: Client supplied filename
            stream: Readable binary file object

        Returns:
            The sanitized filename written to disk
        """
        safe_name = self.upload_name(filename)
        project_name = sanitize_project_name(project)
        target = self.demo_path(project_name, safe_name)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as f:
            shutil.copyfileobj(stream, f)
        logger.info("Uploaded %s to %s", safe_name, project_name)
        return safe_name

    def rename_demo(self, project: str, current_file: str, raw_next: Optional[str]) -> str:
        next_name = sanitize_filename(raw_next)
        if next_name and not is_demo_filename(next_name):
            next_name += DEMO_EXTENSION
        if not next_name or not next_name[:-len(DEMO_EXTENSION)].strip("._"):
            raise NameRequired("File name is required")

        source = self.demo_path(project, current_file)
        target = self.demo_path(project, next_name)
        if not is_demo_filename(current_file) or not source.is_file():
            raise NotFound(f"Demo not found: {current_file}")
        if target.exists() and target != source:
            raise AlreadyExists(f"Demo already exists: {next_name}")
        os.rename(source, target)
        logger.info("Renamed demo %s/%s -> %s", project, current_file, next_name)
        return next_name

    def delete_demo(self, project: str, filename: str) -> None:
        path = self.demo_path(project, filename)
        if not is_demo_filename(filename) or not path.is_file():
            raise NotFound(f"Demo not found: {filename}")
        path.unlink()
        logger.info("Deleted demo %s/%s", project, filename)
