"""
Sincronização de usuários com o provedor de identidade.

Chamado pela ação pós-login do provedor, autenticado pelo segredo
compartilhado ``AUTH_SYNC_SECRET``.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from sis_portal.api.deps import require_shared_secret
from sis_portal.db.base import get_db
from sis_portal.schemas.user import SyncUserRequest, SyncUserResponse
from sis_portal.services.user_service import UserService, get_user_service

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"],
    dependencies=[Depends(require_shared_secret("auth_sync_secret"))],
)


@router.post("/sync-user", response_model=SyncUserResponse)
async def sync_user(
    payload: SyncUserRequest,
    db: AsyncSession = Depends(get_db),
    service: UserService = Depends(get_user_service),
):
    """
    Cria ou atualiza o usuário a partir do login no provedor.

    Args:
        payload: subject, email, nome, subdomínio e roles do provedor
        db: Sessão do banco

    Returns:
        Id do usuário e se foi criado ou atualizado
    """
    result = await service.sync_user(
        db,
        auth_subject=payload.auth_subject,
        email=payload.email,
        full_name=payload.full_name,
        organization_subdomain=payload.organization_subdomain,
        provider_roles=payload.roles,
    )
    return SyncUserResponse(
        message="User created" if result.created else "User updated",
        user_id=result.user.id,
    )
