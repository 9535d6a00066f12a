"""
Station API server.
Serves the project pages, demo streams, the live-reload channel and the
JSON endpoints that create, rename and delete projects and demos.
"""

import logging
from functools import wraps
from typing import Optional

from flask import (
    Blueprint,
    Flask,
    Response,
    current_app,
    jsonify,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from shared.constants import SESSION_COOKIE_NAME
from shared.crypto import CredentialStore
from shared.errors import (
    DemoHubError,
    Forbidden,
    Internal,
    NameRequired,
    RangeNotSatisfiable,
    SetupRequired,
    TooManyAttempts,
    Unauthenticated,
)
from shared.network import is_local_request
from shared.sessions import LoginThrottle, SessionManager
from station.config import StationConfig, load_config
from station.notifier import ChangeNotifier
from station.registry import ProjectRegistry
from station.streaming import file_response
from station.watcher import LibraryWatcher

logger = logging.getLogger(__name__)

EXTENSION_KEY = "demohub"


class StationServices:
    """
    Process-wide state for one station: built at startup, torn down at exit.

    Sessions and push clients only live here, so a restart logs everyone out
    and drops every live connection.
    """

    def __init__(self, config: StationConfig):
        self.config = config
        self.registry = ProjectRegistry(config.music_dir)
        self.credentials = CredentialStore(config.data_dir)
        self.sessions = SessionManager()
        self.login_throttle = LoginThrottle()
        self.notifier = ChangeNotifier()
        self.watcher = LibraryWatcher(config.music_dir, self.notifier.notify_changed)

    def start(self) -> None:
        self.registry.ensure_root()
        if self.config.watch:
            self.watcher.start()

    def shutdown(self) -> None:
        self.watcher.stop()
        self.notifier.close_all()
        self.sessions.clear()


bp = Blueprint("station", __name__, template_folder="templates")


def _services() -> StationServices:
    return current_app.extensions[EXTENSION_KEY]


def _session_token() -> Optional[str]:
    return request.cookies.get(SESSION_COOKIE_NAME)


def _payload() -> dict:
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def _is_secure_request() -> bool:
    if request.is_secure:
        return True
    forwarded = request.headers.get("X-Forwarded-Proto", "")
    return forwarded.split(",")[0].strip().lower() == "https"


def _require_local_origin() -> None:
    services = _services()
    if not is_local_request(request.remote_addr,
                            request.headers.get("X-Forwarded-For"),
                            services.config.trust_proxy):
        raise Forbidden()


def require_auth(view):
    """Gate a mutating endpoint: local network first, then a valid session."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        _require_local_origin()
        services = _services()
        if not services.credentials.is_configured():
            raise SetupRequired()
        if not services.sessions.is_valid(_session_token()):
            raise Unauthenticated()
        return view(*args, **kwargs)
    return wrapper


def _start_session(response: Response) -> Response:
    services = _services()
    token = services.sessions.create()
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        max_age=services.config.session_max_age,
        httponly=True,
        samesite="Lax",
        secure=_is_secure_request(),
        path="/",
    )
    return response


def _auth_status() -> dict:
    services = _services()
    return {
        "configured": services.credentials.is_configured(),
        "authenticated": services.sessions.is_valid(_session_token()),
    }


# --- Pages ---

@bp.route("/")
def home():
    projects = _services().registry.list_projects()
    if projects:
        return redirect(url_for("station.project_page", name=projects[0].name))
    return render_template("index.html", projects=[], auth=_auth_status())


@bp.route("/project/<name>")
def project_page(name):
    registry = _services().registry
    demos = registry.list_demos(name)
    return render_template(
        "project.html",
        project_name=name,
        note=registry.read_note(name),
        demos=demos,
        projects=registry.list_projects(),
        auth=_auth_status(),
    )


@bp.route("/music/<project>/<file>")
def stream_demo(project, file):
    """Serve a demo file with range support."""
    path = _services().registry.demo_path(project, file)
    return file_response(path, request.headers.get("Range"))


@bp.route("/events")
def events():
    notifier = _services().notifier
    client = notifier.connect()
    response = Response(
        notifier.stream(client),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
    # HEAD requests and aborted connections never run the generator body
    response.call_on_close(lambda: notifier.disconnect(client))
    return response


# --- Auth Endpoints ---

@bp.route("/api/auth/status", methods=["GET"])
def auth_status():
    return jsonify(_auth_status())


@bp.route("/api/auth/setup", methods=["POST"])
def auth_setup():
    _require_local_origin()
    services = _services()
    services.credentials.create(_payload().get("password") or "")
    logger.info("Password configured from %s", request.remote_addr)
    return _start_session(jsonify({"ok": True})), 201


@bp.route("/api/auth/login", methods=["POST"])
def auth_login():
    _require_local_origin()
    services = _services()
    client_key = request.remote_addr or "unknown"
    if not services.login_throttle.allow(client_key):
        raise TooManyAttempts()
    try:
        services.credentials.verify(_payload().get("password") or "")
    except DemoHubError:
        logger.warning("Failed login from %s", client_key)
        raise
    services.login_throttle.reset(client_key)
    return _start_session(jsonify({"ok": True}))


@bp.route("/api/auth/logout", methods=["POST"])
def auth_logout():
    _services().sessions.revoke(_session_token())
    response = jsonify({"ok": True})
    response.delete_cookie(SESSION_COOKIE_NAME, path="/", httponly=True, samesite="Lax")
    return response


# --- Project Endpoints ---

@bp.route("/api/projects", methods=["GET"])
def list_projects():
    projects = _services().registry.list_projects()
    return jsonify({"projects": [p.to_dict() for p in projects]})


@bp.route("/api/projects", methods=["POST"])
@require_auth
def create_project():
    data = _payload()
    name = _services().registry.create_project(data.get("name"), data.get("note"))
    return jsonify({"ok": True, "project": name}), 201


@bp.route("/api/projects/<name>", methods=["PUT"])
@require_auth
def rename_project(name):
    new_name = _services().registry.rename_project(name, _payload().get("name"))
    return jsonify({"ok": True, "project": new_name})


@bp.route("/api/projects/<name>", methods=["DELETE"])
@require_auth
def delete_project(name):
    _services().registry.delete_project(name)
    return jsonify({"ok": True})


# --- Demo Endpoints ---

@bp.route("/api/projects/<name>/demos", methods=["GET"])
def list_demos(name):
    registry = _services().registry
    demos = registry.list_demos(name)
    return jsonify({
        "project": name,
        "note": registry.read_note(name),
        "demos": [d.to_dict() for d in demos],
    })


@bp.route("/api/projects/<name>/upload", methods=["POST"])
@require_auth
def upload_demo(name):
    files = request.files.getlist("file")
    if not files:
        raise NameRequired("No file uploaded")
    registry = _services().registry
    for f in files:
        registry.upload_name(f.filename)
    saved = [registry.upload_demo(name, f.filename, f.stream) for f in files]
    return jsonify({"ok": True, "files": saved}), 201


@bp.route("/api/projects/<name>/demos/<file>", methods=["PUT"])
@require_auth
def rename_demo(name, file):
    new_name = _services().registry.rename_demo(name, file, _payload().get("name"))
    return jsonify({"ok": True, "file": new_name})


@bp.route("/api/projects/<name>/demos/<file>", methods=["DELETE"])
@require_auth
def delete_demo(name, file):
    _services().registry.delete_demo(name, file)
    return jsonify({"ok": True})


# --- Errors ---

def handle_station_error(error: DemoHubError):
    response = jsonify(error.to_dict())
    response.status_code = error.status_code
    if isinstance(error, RangeNotSatisfiable):
        response.headers["Content-Range"] = f"bytes */{error.size}"
        response.headers["Accept-Ranges"] = "bytes"
    return response


def handle_unexpected_error(error: Exception):
    if isinstance(error, HTTPException):
        return error
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return handle_station_error(Internal())


def create_app(config: Optional[StationConfig] = None,
               services: Optional[StationServices] = None) -> Flask:
    """
    Build the Flask application.

    Args:
        config: Station settings (read from the environment if omitted)
        services: Pre-built services, mainly for tests

    Returns:
        Configured app; call ``app.extensions["demohub"].start()`` to begin
        watching the music root.
    """
    if services is None:
        services = StationServices(config or load_config())

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = services.config.max_upload_mb * 1024 * 1024
    app.extensions[EXTENSION_KEY] = services

    # Range headers must be readable by cross-origin players
    CORS(app, resources={r"/music/*": {
        "origins": "*",
        "allow_headers": ["Range"],
        "expose_headers": ["Content-Range", "Content-Length", "Accept-Ranges"],
    }})

    app.register_blueprint(bp)
    app.register_error_handler(DemoHubError, handle_station_error)
    app.register_error_handler(Exception, handle_unexpected_error)
    return app
