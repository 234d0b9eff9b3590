"""
Account flows: sign up, sign in, sign out and password reset.

Input is validated locally before any call reaches the auth service.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from ..domain.exceptions import ValidationError
from ..domain.models import AuthUser, Profile, Session, UserType
from .protocols import AuthClientProtocol, SignUpResult, StoreProtocol

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")


def validate_email(email: str) -> str:
    email = (email or "").strip()
    if not email:
        raise ValidationError("E-mail é obrigatório.")
    if not EMAIL_PATTERN.search(email):
        raise ValidationError("E-mail inválido.")
    return email


class AccountService:
    """Wraps the auth client with the validation the sign-in and sign-up forms apply."""

    def __init__(self, auth_client: AuthClientProtocol, store: StoreProtocol) -> None:
        self._auth_client = auth_client
        self._store = store

    async def sign_up(self, name: str, email: str, password: str) -> SignUpResult:
        """
        Register a customer and create their profile row.

        When the auth service holds the user back for e-mail confirmation the
        result carries no user and no profile is written.
        """
        if not (name or "").strip() or not (email or "").strip() or not (password or "").strip():
            raise ValidationError("Por favor, preencha todos os campos.")

        result = await self._auth_client.sign_up(email.strip(), password)

        if result.needs_confirmation:
            logger.info("Sign-up of %s awaits e-mail confirmation", email)
            return result

        await self._store.insert_profile(
            Profile(id=result.user.id, name=name.strip(), user_type=UserType.CUSTOMER)
        )
        return result

    async def sign_in(self, email: str, password: str) -> Session:
        email = validate_email(email)
        if not password:
            raise ValidationError("Senha é obrigatória.")
        return await self._auth_client.sign_in_with_password(email, password)

    async def sign_out(self) -> None:
        await self._auth_client.sign_out()

    async def request_password_reset(self, email: str) -> None:
        email = (email or "").strip()
        if not email:
            raise ValidationError("Por favor, digite seu e-mail.")
        await self._auth_client.reset_password_for_email(email)

    async def current_user(self) -> Optional[AuthUser]:
        return await self._auth_client.get_user()
