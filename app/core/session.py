"""
Session context supplied by the authentication layer.

Authentication itself lives outside this service; upstream middleware is
expected to set the headers below after verifying the caller.
"""
from typing import Optional
from fastapi import Header, HTTPException, status
from pydantic import BaseModel

from app.core.exceptions import RoleForbidden

ROLE_ADMIN = "admin"
ROLE_CREW = "crew"
VALID_ROLES = (ROLE_ADMIN, ROLE_CREW)


class SessionContext(BaseModel):
    company_id: str
    role: str = ROLE_ADMIN
    actor: str = "Office"

    @property
    def is_crew(self) -> bool:
        return self.role == ROLE_CREW


def get_session_context(
    x_company_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
    x_actor: Optional[str] = Header(default=None),
) -> SessionContext:
    if not x_company_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing company context")

    role = (x_user_role or ROLE_ADMIN).lower()
    if role not in VALID_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid role. Must be one of {', '.join(VALID_ROLES)}"
        )

    return SessionContext(
        company_id=x_company_id,
        role=role,
        actor=x_actor or ("Crew" if role == ROLE_CREW else "Office"),
    )


def require_office(session: SessionContext):
    """Crew devices may complete jobs but not edit estimates, stock or settings."""
    if session.is_crew:
        raise RoleForbidden("Crew accounts cannot perform office operations")
