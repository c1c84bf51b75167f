#!/usr/bin/env python
# Authentication service handling login, auto-login and token persistence
import logging
import time

from client.api.base_service import BaseService, APIError
from client.utils.config import config

logger = logging.getLogger(__name__)

# Saved refresh tokens older than this are not used for auto-login
AUTO_LOGIN_MAX_AGE = 7 * 24 * 60 * 60


class AuthService(BaseService):
    """Service for authentication-related API operations"""

    async def load_profile(self) -> None:
        """Fetch the directory identity (name, picture) of the logged-in user"""
        try:
            profile = await self.get("/users/me")
        except APIError as e:
            logger.warning(f"Could not load profile: {e.detail}")
            return
        self.state.set_profile(profile)

    async def login(self, email: str, password: str) -> bool:
        """Log in with email and password"""
        try:
            response = await self.request(
                "POST",
                "/auth/login",
                data={"email": email, "password": password},
                retry_auth=False
            )
        except APIError as e:
            logger.warning(f"Login failed: {e.detail}")
            return False

        self.state.set_auth(response)
        self.remember_session()
        await self.load_profile()
        logger.info(f"Logged in as {self.state.email}")
        return True

    async def try_auto_login(self) -> bool:
        """Try to log in using the saved refresh token"""
        auth_data = config.load_auth()

        if not auth_data or not auth_data.get("refresh_token"):
            return False

        if time.time() - auth_data.get("timestamp", 0) > AUTO_LOGIN_MAX_AGE:
            logger.info("Saved session is too old for auto-login")
            return False

        self.state.refresh_token = auth_data.get("refresh_token")
        self.state.email = auth_data.get("email")
        self.state.user_id = auth_data.get("user_id")

        if not await self.refresh_access_token():
            self.state.clear_auth()
            return False

        await self.load_profile()
        return True

    def logout(self) -> None:
        """Forget the current session locally and on disk"""
        self.state.clear_auth()
        config.clear_auth()
