"""
Aulux configuration: one YAML file, environment references resolved at load time,
reloaded when the file changes on disk.
"""
import logging
import os
import re
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import yaml
from watchdog.events import FileModifiedEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

ENV_LINE = re.compile(r'^([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*)$')
ENV_REF = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')
BARE_ENV_REF = re.compile(r'^\$([A-Za-z_][A-Za-z0-9_]*)$')

DEFAULT_SCOPES = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/classroom.courses.readonly",
    "https://www.googleapis.com/auth/classroom.rosters.readonly",
    "https://www.googleapis.com/auth/classroom.coursework.students.readonly",
    "https://www.googleapis.com/auth/classroom.student-submissions.students.readonly",
    "https://www.googleapis.com/auth/calendar.readonly",
    "https://www.googleapis.com/auth/calendar.events",
]

DEFAULT_CLASS_KEYWORDS = ["clase", "class", "curso", "course", "semillero", "digital", "aulux"]


def default_config(config_dir: Path) -> Dict[str, Any]:
    return {
        "api": {
            "host": "127.0.0.1",
            "port": 8765,
        },
        "database": {
            "path": str(Path.home() / ".aulux" / "aulux.db"),
        },
        "logging": {
            "level": "INFO",
            "file": str(config_dir / "aulux.log"),
        },
        "auth": {
            "client_id": "${GOOGLE_CLIENT_ID}",
            "client_secret": "${GOOGLE_CLIENT_SECRET}",
            "redirect_uri": "http://127.0.0.1:8765/api/auth/callback/google",
            "scopes": list(DEFAULT_SCOPES),
            "cookie_name": "aulux_session",
            "session_max_age": 30 * 24 * 3600,
            "post_login_redirect": "/",
            "allow_insecure_transport": False,
        },
        "roles": {
            "coordinator_env": "COORDINATOR_EMAILS",
            "professor_env": "PROFESSOR_EMAILS",
            "student_env": "STUDENT_EMAILS",
        },
        "google": {
            "request_timeout": 20,
            "max_workers": 8,
            "page_size": 50,
        },
        "calendar": {
            "time_zone": "America/Argentina/Buenos_Aires",
            "class_keywords": list(DEFAULT_CLASS_KEYWORDS),
            "window_days": 30,
        },
        "attendance": {
            "backend": "sql",
        },
        "notifications": {
            "cron_secret": "${CRON_SECRET}",
            "check_last": "1h",
            "email": {
                "api_key": "${RESEND_API_KEY}",
                "from": "${NOTIFICATION_FROM_EMAIL}",
            },
            "whatsapp": {
                "account_sid": "${TWILIO_ACCOUNT_SID}",
                "auth_token": "${TWILIO_AUTH_TOKEN}",
                "from": "${TWILIO_WHATSAPP_FROM}",
            },
            "phone_book": {},
        },
    }


def substitute_env(value: Any) -> Any:
    """Resolve ${VAR} anywhere in a string (and a whole-string $VAR) from the environment.

    Unset variables resolve to ''. Dicts and lists are walked recursively.
    """
    if isinstance(value, dict):
        return {key: substitute_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [substitute_env(item) for item in value]
    if not isinstance(value, str):
        return value
    bare = BARE_ENV_REF.match(value)
    if bare:
        return os.environ.get(bare.group(1), "")
    return ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), value)


def load_env_file(candidates: Iterable[Path]) -> Optional[Path]:
    """Export KEY=VALUE lines of the first existing file; variables already set win."""
    env_file = next((p for p in candidates if p.is_file()), None)
    if env_file is None:
        logger.debug("No .env file found")
        return None

    logger.info(f"Loading environment variables from: {env_file}")
    try:
        lines = env_file.read_text().splitlines()
    except OSError as e:
        logger.warning(f"Could not read {env_file}: {e}")
        return None
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        match = ENV_LINE.match(line)
        if not match:
            continue
        key, value = match.groups()
        if key not in os.environ:
            os.environ[key] = value.strip('"').strip("'")
    return env_file


def diff_config(old: Dict[str, Any], new: Dict[str, Any], prefix: str = "") -> List[Tuple[str, str]]:
    """(change, dotted.key) pairs, change being added | removed | changed."""
    changes: List[Tuple[str, str]] = []
    for key in sorted(set(old) | set(new), key=str):
        path = f"{prefix}.{key}" if prefix else str(key)
        if key not in new:
            changes.append(("removed", path))
        elif key not in old:
            changes.append(("added", path))
        elif isinstance(old[key], dict) and isinstance(new[key], dict):
            changes.extend(diff_config(old[key], new[key], path))
        elif old[key] != new[key]:
            changes.append(("changed", path))
    return changes


class ConfigChangeHandler(FileSystemEventHandler):
    """Reloads the config when its file is modified; bursts of events within cooldown count once."""

    def __init__(self, config: "Config", cooldown: float = 1.0):
        self.config = config
        self.cooldown = cooldown
        self._last_reload = 0.0

    def on_modified(self, event):
        if not isinstance(event, FileModifiedEvent):
            return
        if Path(event.src_path).resolve() != self.config.config_file:
            return
        now = time.monotonic()
        if now - self._last_reload < self.cooldown:
            return
        self._last_reload = now
        try:
            self.config.reload()
        except Exception as e:
            logger.error(f"Error handling config change: {e}")


class Config:
    """The YAML config of one Aulux instance.

    data holds the file contents with environment references resolved;
    section(name) merges one top-level section over its defaults.
    """

    def __init__(self, config_path: Optional[str] = None, watch: bool = True):
        self.config_file = Path(config_path).resolve() if config_path else Path.cwd() / "config.yaml"
        self.config_dir = self.config_file.parent
        self.change_callbacks: List[Callable[[Dict[str, Any]], None]] = []
        self.observer = None
        self._reloading = False
        self.data: Dict[str, Any] = {}
        logger.debug(f"Using config file: {self.config_file}")

        load_env_file([self.config_dir / ".env", self.config_dir.parent / ".env", Path.cwd() / ".env"])
        self._write_default_if_missing()
        self.data = self._read() or substitute_env(default_config(self.config_dir))

        if watch:
            self.observer = Observer()
            self.observer.schedule(ConfigChangeHandler(self), str(self.config_dir), recursive=False)
            self.observer.start()
            logger.info(f"Watching {self.config_dir} for config changes")

    def register_change_callback(self, callback: Callable[[Dict[str, Any]], None]) -> None:
        self.change_callbacks.append(callback)

    def _write_default_if_missing(self) -> None:
        if self.config_file.exists():
            return
        logger.info(f"Creating default config file: {self.config_file}")
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(yaml.dump(default_config(self.config_dir)))

    def _read(self) -> Optional[Dict[str, Any]]:
        """Parsed and resolved file contents, or None when the file is unusable."""
        try:
            with open(self.config_file) as f:
                raw = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error loading config {self.config_file}: {e}")
            return None
        if not isinstance(raw, dict):
            logger.error(f"Invalid config {self.config_file}: root must be a mapping")
            return None
        data = substitute_env(raw)
        log_file = (data.get("logging") or {}).get("file")
        if log_file:
            data["logging"]["file"] = os.path.expanduser(log_file)
        return data

    def reload(self) -> None:
        """Re-read the file; keep the current data if it is unusable. Callbacks run either way."""
        if self._reloading:
            return
        self._reloading = True
        try:
            # editors often truncate before writing
            time.sleep(0.1)
            new_data = self._read()
            if new_data is None:
                logger.info("Keeping previous configuration")
            else:
                for change, path in diff_config(self.data, new_data):
                    logger.info(f"Config {change}: {path}")
                self.data = new_data
            for callback in self.change_callbacks:
                try:
                    callback(self.data)
                except Exception as e:
                    logger.error(f"Error in config change callback: {e}", exc_info=True)
        finally:
            self._reloading = False

    def cleanup(self) -> None:
        """Stop the file observer"""
        if self.observer is not None:
            self.observer.stop()
            self.observer.join()
            self.observer = None

    def section(self, name: str) -> Dict[str, Any]:
        """Return a top-level section merged over its defaults."""
        merged = dict(substitute_env(default_config(self.config_dir).get(name) or {}))
        merged.update(self.data.get(name) or {})
        return merged
