"""
Request principal - identity supplied by the upstream auth layer as headers
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from finance_core.errors import FinanceCoreError
from finance_core.schemas import Principal

PO_ISSUER_ROLES = ("SUPERADMIN", "PROJECT_MANAGER")
FINANCE_ROLES = ("SUPERADMIN", "FINANCE", "PROJECT_MANAGER")


async def get_principal(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
) -> Principal:
    if not x_user_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return Principal(
        id=x_user_id,
        role=x_user_role.upper(),
        email=x_user_email,
        name=x_user_name,
    )


def require_roles(*roles: str):
    """Dependency factory: the principal must hold one of `roles`"""

    async def checker(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return checker


def http_error(e: FinanceCoreError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=str(e))
