"""
Admin account management.
"""
from typing import Optional

from portfolio_cms.bindings.base import ActionResult, ActionStatus
from portfolio_cms.config import settings
from portfolio_cms.schemas import Credentials
from portfolio_cms.services.auth_service import AuthService
from portfolio_cms.services.notifications import Notifier


class UserManagementBinding:
    """Creates further admin accounts; holds no snapshot."""

    CREATED = "Admin account created successfully!"

    def __init__(self, auth: AuthService, notifier: Notifier, min_password_length: int = settings.MIN_PASSWORD_LENGTH):
        self.auth = auth
        self.notifier = notifier
        self.min_password_length = min_password_length

    def _validate(self, credentials: Credentials) -> Optional[str]:
        if not credentials.email.strip():
            return "Please enter an email address"
        if len(credentials.password) < self.min_password_length:
            return f"Password must be at least {self.min_password_length} characters long"
        return None

    async def create_admin(self, credentials: Credentials) -> ActionResult:
        error = self._validate(credentials)
        if error:
            self.notifier.error(error)
            return ActionResult(ActionStatus.INVALID, error)

        result = await self.auth.sign_up(credentials.email, credentials.password)
        if not result.ok:
            self.notifier.error(result.error.message)
            return ActionResult(ActionStatus.FAILED, result.error.message)

        self.notifier.success(self.CREATED)
        return ActionResult(ActionStatus.SUCCESS, self.CREATED, result.data)
