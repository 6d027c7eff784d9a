"""
docapi — User Model
=====================

What:  ORM model for the `users` table.
Who:   Served by the current-user account handlers and the admin user routes.

`role` and `password` are never writable through the account routes and never
returned by them; authentication itself lives outside this service.
"""

import re
from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from docapi.database import Base
from docapi.models.document import DocumentMixin

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_PATTERN = re.compile(r"^\+?[0-9 ()-]{6,20}$")
ROLES = ("user", "admin")


class User(DocumentMixin, Base):
    __tablename__ = "users"
    HIDDEN_FIELDS = ("password",)

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="user")
    password: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    def validate(self) -> None:
        for key in ("first_name", "last_name"):
            value = getattr(self, key)
            if value is None or not value.strip():
                raise ValueError(f"{key} must not be empty")
        if self.email is None or not EMAIL_PATTERN.match(self.email):
            raise ValueError("Please provide a valid email address")
        if self.phone_number and not PHONE_PATTERN.match(self.phone_number):
            raise ValueError("Please provide a valid phone number")
        if self.role is not None and self.role not in ROLES:
            raise ValueError("Role must be either 'user' or 'admin'")
