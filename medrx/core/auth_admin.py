from __future__ import annotations

from uuid import UUID

import requests
from fastapi import HTTPException, status

from medrx.core.config import settings


class AuthAdminClient:
    """Privileged calls against the hosted auth service's admin API."""

    def __init__(self) -> None:
        self.base_url = settings.auth_admin_base_url.rstrip("/")

    def update_password(self, user_id: UUID, new_password: str) -> None:
        if not settings.auth_service_role_key:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="AUTH_SERVICE_ROLE_KEY is not configured",
            )

        response = requests.put(
            f"{self.base_url}/admin/users/{user_id}",
            headers={
                "Authorization": f"Bearer {settings.auth_service_role_key}",
                "apikey": settings.auth_service_role_key,
            },
            json={"password": new_password},
            timeout=8,
        )
        response.raise_for_status()
