import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from aulux.plugins.auth.google_oauth import GoogleOAuth

from .config import Config
from .roles import EnvAllowlistRoleProvider, RoleProvider
from .sessions import CurrentSession, SessionManager

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'


class AuluxApp:
    """Wires config, logging, database, sessions and the per-plugin services."""

    _log_handlers: List[logging.Handler] = []

    def __init__(
        self,
        config_path: Optional[str] = None,
        watch_config: bool = True,
        db_url: Optional[str] = None,
        role_provider: Optional[RoleProvider] = None,
        token_refresher: Optional[Callable] = None,
    ):
        self.logger = logging.getLogger(self.__class__.__name__)

        self.config = Config(config_path=config_path, watch=watch_config)
        self.config.register_change_callback(self.handle_config_change)

        self._setup_logging()

        # Initialize database (before services so tables exist)
        from .db import init_db
        init_db(self.config.data, db_url=db_url)

        self.role_provider = role_provider or EnvAllowlistRoleProvider.from_config(self.config.section("roles"))
        self.sessions = SessionManager(self.role_provider, self.config.section("auth"), token_refresher=token_refresher)

        self.oauth = GoogleOAuth(self.config.section("auth"))

        self.attendance = self._build_attendance_repository()
        self.dispatcher = self._build_dispatcher()

        self.classroom_client_factory: Callable[[CurrentSession], Any] = self._build_classroom_client
        self.calendar_client_factory: Callable[[CurrentSession], Any] = self._build_calendar_client

    def _setup_logging(self) -> None:
        """Configure logging to write to both file and stdout"""
        log_config = self.config.section("logging")
        root_logger = logging.getLogger()
        for handler in AuluxApp._log_handlers:
            root_logger.removeHandler(handler)
            handler.close()
        AuluxApp._log_handlers = []

        root_logger.setLevel(getattr(logging, str(log_config.get("level") or "INFO").upper(), logging.INFO))
        formatter = logging.Formatter(LOG_FORMAT)

        handlers: List[logging.Handler] = []
        log_file = log_config.get("file")
        if log_file:
            Path(log_file).expanduser().parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(Path(log_file).expanduser()))
        handlers.append(logging.StreamHandler(sys.stdout))

        # The start-up stdout handler from main.setup_basic_logging is replaced by ours
        for handler in list(root_logger.handlers):
            if getattr(handler, "_aulux_basic", False):
                root_logger.removeHandler(handler)

        for handler in handlers:
            handler.setFormatter(formatter)
            root_logger.addHandler(handler)
        AuluxApp._log_handlers = handlers

        logging.info("Aulux application starting...")

    def _build_attendance_repository(self):
        from aulux.plugins.attendance.backends import get_repository

        att_config = self.config.section("attendance")
        backend = att_config.get("backend") or "sql"
        repository = get_repository(backend, att_config)
        if repository is None:
            self.logger.warning(f"Unknown attendance backend '{backend}', using sql")
            repository = get_repository("sql", att_config)
        self.logger.info(f"Attendance backend: {backend}")
        return repository

    def _build_dispatcher(self):
        from aulux.plugins.notifications.channels import ResendEmailChannel, TwilioWhatsAppChannel
        from aulux.plugins.notifications.dispatcher import NotificationDispatcher
        from aulux.plugins.notifications.service import record_attempt

        notif_config = self.config.section("notifications")
        return NotificationDispatcher(
            ResendEmailChannel.from_config(notif_config.get("email") or {}),
            TwilioWhatsAppChannel.from_config(notif_config.get("whatsapp") or {}),
            on_attempt=record_attempt,
        )

    def _build_classroom_client(self, current: CurrentSession):
        from aulux.plugins.classroom.classroom_client import ClassroomClient

        google_config = self.config.section("google")
        return ClassroomClient(
            self.sessions.credentials(current),
            timeout=google_config.get("request_timeout"),
            page_size=int(google_config.get("page_size") or 50),
        )

    def _build_calendar_client(self, current: CurrentSession):
        from aulux.plugins.calendar.calendar_client import CalendarClient

        google_config = self.config.section("google")
        return CalendarClient(self.sessions.credentials(current), timeout=google_config.get("request_timeout"))

    def classroom_client(self, current: CurrentSession):
        """Classroom client acting as the session's user."""
        return self.classroom_client_factory(current)

    def calendar_client(self, current: CurrentSession):
        """Calendar client acting as the session's user."""
        return self.calendar_client_factory(current)

    def handle_config_change(self, new_config: Dict[str, Any]) -> None:
        """Re-apply the sections that can change at runtime."""
        self.logger.info("Handling config change")
        try:
            self._setup_logging()
            self.sessions.auth_config = self.config.section("auth")
            self.oauth = GoogleOAuth(self.sessions.auth_config)
            if isinstance(self.role_provider, EnvAllowlistRoleProvider):
                self.role_provider = EnvAllowlistRoleProvider.from_config(self.config.section("roles"))
                self.sessions.role_provider = self.role_provider
            self.dispatcher = self._build_dispatcher()
        except Exception as e:
            self.logger.error(f"Error handling config change: {e}", exc_info=True)

    def run(self) -> None:
        try:
            from aulux.api import run_api_server
            run_api_server(self)
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        self.config.cleanup()
        from .db import dispose_db
        dispose_db()
        self.logger.info("Aulux application stopped")
