"""
Demo authentication flows. Interface shape only: fixed admin credentials, a fixed
verification code and plain password comparison. Not a security boundary.
"""

import logging
from typing import Any, Optional

from helpdesk.config import DEMO_ADMIN_EMAIL, DEMO_ADMIN_PASSWORD, DEMO_VERIFICATION_CODE
from helpdesk.errors import AuthError, ValidationError
from helpdesk.models import Role, User
from helpdesk.services.users import UserDirectory, to_view

logger = logging.getLogger(__name__)


def _check_code(code: str) -> None:
    if code.strip() != DEMO_VERIFICATION_CODE:
        raise ValidationError("Invalid verification code")


class DemoAuth:
    def __init__(self, users: UserDirectory):
        self.users = users

    def _admin(self) -> Optional[User]:
        admins = self.users.list_users(role=Role.ADMINISTRATOR.value)
        return admins[0] if admins else None

    def login(self, email: str, password: str) -> dict[str, Any]:
        if email.strip().lower() == DEMO_ADMIN_EMAIL and password == DEMO_ADMIN_PASSWORD:
            admin = self._admin()
            return {"success": True, "user": to_view(admin) if admin else None}
        user = self.users.find_by_login(email)
        if user is None or user.password != password:
            logger.info("Failed demo login for %s.", email)
            raise AuthError("Invalid email or password")
        return {"success": True, "user": to_view(user)}

    def signup(self, email: str, password: str, full_name: str, username: Optional[str] = None) -> dict[str, Any]:
        if self.users.find_by_login(email) is not None:
            raise ValidationError("An account with this email already exists")
        user = self.users.create_user(
            username=username or email.split("@")[0],
            password=password,
            email=email,
            full_name=full_name,
            role=Role.CUSTOMER,
        )
        return {
            "success": True,
            "requiresVerification": True,
            "message": "Verification code sent to your email",
            "user": to_view(user),
        }

    def verify_email(self, email: str, code: str) -> dict[str, Any]:
        _check_code(code)
        return {"success": True, "message": "Email verified"}

    def forgot_password(self, email: str) -> dict[str, Any]:
        # Same answer whether or not the account exists.
        return {"success": True, "message": "If the account exists, a reset code has been sent"}

    def verify_reset_code(self, email: str, code: str) -> dict[str, Any]:
        _check_code(code)
        return {"success": True, "message": "Code verified"}

    def reset_password(self, email: str, code: str, new_password: str) -> dict[str, Any]:
        _check_code(code)
        user = self.users.find_by_login(email)
        if user is not None:
            self.users.update_user(user.id, {"password": new_password})
            logger.info("Password reset for user %s.", user.id)
        return {"success": True, "message": "Password has been reset"}
