"""Sign-up, sign-in and dismissal of CRM users."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from filecrm.domain.errors import NotFoundError, ValidationError
from filecrm.domain.models import User, UserRole, UserStatus
from filecrm.domain.validation import check_email, check_not_empty
from filecrm.persistence.queries import find_user_by_email
from filecrm.services.notifications import NotificationError

if TYPE_CHECKING:
    from filecrm.persistence.entity_store import EntityStore
    from filecrm.services.notifications import NotificationSender

_WELCOME_MESSAGE = "You have been registered successfully. Temporary password: {password}"


class AccountService:
    def __init__(
        self,
        users: EntityStore[User],
        mailer: NotificationSender,
        *,
        logger: Any | None = None,
    ) -> None:
        self._users = users
        self._mailer = mailer
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def sign_up(
        self,
        *,
        email: str,
        password: str,
        name: str,
        last_name: str,
        role: UserRole | str,
    ) -> User:
        """
        Create a user and send the welcome mail.

        A failed notification is logged and does not undo the create.
        """

        check_email(email, "User.email")
        candidate = User(
            email=email,
            password=password,
            name=name,
            last_name=last_name,
            role=role,  # type: ignore[arg-type]
        )
        if find_user_by_email(self._users, email) is not None:
            raise ValidationError("User.email", f"{email!r} is already registered")

        user = self._users.create(candidate)
        try:
            self._mailer.send(user.email, _WELCOME_MESSAGE.format(password=user.password))
        except NotificationError as exc:
            self._logger.warning(
                "notification_failed",
                record_id=user.id,
                address=exc.address,
                reason=exc.reason,
            )
        return user

    def sign_in(self, email: str, password: str) -> bool:
        """Plaintext comparison against the stored password; dismissed users cannot sign in."""

        check_not_empty(email, "sign_in.email")
        check_not_empty(password, "sign_in.password")
        user = find_user_by_email(self._users, email)
        if user is None or user.status is UserStatus.FIRED:
            return False
        return user.password == password

    def list_users(self) -> list[User]:
        return self._users.find_all()

    def dismiss(self, user_id: int) -> User:
        """Soft delete: the user stays on file with status FIRED."""

        self._users.delete_by_id(user_id)
        user = self._users.find_by_id(user_id)
        if user is None:
            raise NotFoundError(self._users.name, user_id)
        return user


__all__ = ["AccountService"]
