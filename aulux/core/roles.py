"""
Role resolution: map an authenticated email to coordinador | profesor | alumno.

The rule lives in resolve_role(); RoleProvider is the pluggable seam the session
layer calls at sign-in and on every token refresh.
"""
import logging
import os
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)


class Role:
    """Role names as exposed to the UI."""
    COORDINATOR = "coordinador"
    PROFESSOR = "profesor"
    STUDENT = "alumno"

    ALL = (COORDINATOR, PROFESSOR, STUDENT)
    STAFF = (COORDINATOR, PROFESSOR)


def parse_allowlist(value: Optional[str]) -> List[str]:
    """Split a comma-separated list into trimmed, lower-cased, non-empty emails."""
    if not value:
        return []
    return [item.strip().lower() for item in value.split(",") if item.strip()]


def resolve_role(
    email: Optional[str],
    coordinators: Iterable[str],
    professors: Iterable[str],
    students: Iterable[str],
) -> str:
    """First match wins in the order coordinator, professor, student; no match is alumno."""
    if not email:
        return Role.STUDENT
    lower = email.strip().lower()
    if lower in {e.strip().lower() for e in coordinators}:
        return Role.COORDINATOR
    if lower in {e.strip().lower() for e in professors}:
        return Role.PROFESSOR
    if lower in {e.strip().lower() for e in students}:
        return Role.STUDENT
    return Role.STUDENT


class RoleProvider(ABC):
    """Authorization provider: returns the role for an email."""

    @abstractmethod
    def resolve(self, email: str) -> str:
        pass

    def emails_with_role(self, role: str) -> List[str]:
        """Emails explicitly listed for a role (used by the cron pass). Empty when unknown."""
        return []


class EnvAllowlistRoleProvider(RoleProvider):
    """Reads the three allowlists from environment variables on every call; nothing is cached."""

    def __init__(
        self,
        coordinator_env: str = "COORDINATOR_EMAILS",
        professor_env: str = "PROFESSOR_EMAILS",
        student_env: str = "STUDENT_EMAILS",
    ):
        self.coordinator_env = coordinator_env
        self.professor_env = professor_env
        self.student_env = student_env

    @classmethod
    def from_config(cls, roles_config: dict) -> "EnvAllowlistRoleProvider":
        return cls(
            coordinator_env=roles_config.get("coordinator_env") or "COORDINATOR_EMAILS",
            professor_env=roles_config.get("professor_env") or "PROFESSOR_EMAILS",
            student_env=roles_config.get("student_env") or "STUDENT_EMAILS",
        )

    def _list(self, env_name: str) -> List[str]:
        return parse_allowlist(os.environ.get(env_name))

    def resolve(self, email: str) -> str:
        role = resolve_role(
            email,
            self._list(self.coordinator_env),
            self._list(self.professor_env),
            self._list(self.student_env),
        )
        logger.debug(f"Resolved role {role} for {email}")
        return role

    def emails_with_role(self, role: str) -> List[str]:
        env_name = {
            Role.COORDINATOR: self.coordinator_env,
            Role.PROFESSOR: self.professor_env,
            Role.STUDENT: self.student_env,
        }.get(role)
        return self._list(env_name) if env_name else []
