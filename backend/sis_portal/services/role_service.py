"""
Roles globais: hierarquia, CRUD e permissões de módulo/aba.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sis_portal.core.errors import ConflictError, InvalidRequestError, NotFoundError
from sis_portal.core.logging import get_logger
from sis_portal.db.models import (
    GlobalModule,
    GlobalRole,
    RoleModulePermission,
    RoleTabPermission,
    User,
    UserRole,
)
from sis_portal.services.tab_overrides import tab_identity

logger = get_logger(__name__)

ROLE_FIELDS = (
    "name",
    "display_name",
    "description",
    "icon",
    "parent_role_id",
    "role_level",
    "role_category",
    "sort_order",
    "priority_report_id",
    "is_active",
)


@dataclass
class RoleNode:
    role: Any
    children: list["RoleNode"] = field(default_factory=list)


def _role_sort_key(role: Any) -> tuple[int, str]:
    return (role.sort_order or 0, role.name or "")


def build_role_tree(roles: Sequence[Any]) -> list[RoleNode]:
    """
    Monta a floresta de roles a partir de ``parent_role_id``.

    Filhos ordenados por (sort_order, name) em todos os níveis. Roles cujo
    pai não está na lista viram raízes.
    """
    known_ids = {role.id for role in roles}
    children_by_parent: dict[Optional[UUID], list[Any]] = defaultdict(list)
    for role in roles:
        parent_id = role.parent_role_id if role.parent_role_id in known_ids else None
        children_by_parent[parent_id].append(role)

    def build(parent_id: Optional[UUID], path: frozenset) -> list[RoleNode]:
        nodes = []
        for role in sorted(children_by_parent.get(parent_id, []), key=_role_sort_key):
            if role.id in path:
                continue
            nodes.append(RoleNode(role=role, children=build(role.id, path | {role.id})))
        return nodes

    return build(None, frozenset())


def would_create_cycle(
    parents_by_id: Mapping[UUID, Optional[UUID]],
    role_id: UUID,
    new_parent_id: Optional[UUID],
) -> bool:
    """Indica se ``role_id`` passaria a ser ancestral de si mesmo."""
    current = new_parent_id
    visited: set[UUID] = set()
    while current is not None:
        if current == role_id:
            return True
        if current in visited:
            return True
        visited.add(current)
        current = parents_by_id.get(current)
    return False


def descendant_ids(parents_by_id: Mapping[UUID, Optional[UUID]], role_id: UUID) -> set[UUID]:
    """Todos os roles abaixo de ``role_id`` na hierarquia."""
    children: dict[UUID, list[UUID]] = defaultdict(list)
    for child_id, parent_id in parents_by_id.items():
        if parent_id is not None:
            children[parent_id].append(child_id)

    found: set[UUID] = set()
    stack = list(children.get(role_id, []))
    while stack:
        current = stack.pop()
        if current in found or current == role_id:
            continue
        found.add(current)
        stack.extend(children.get(current, []))
    return found


class RoleService:
    """Gerencia o catálogo global de roles."""

    async def list_roles(self, db: AsyncSession, active_only: bool = False) -> list[GlobalRole]:
        query = select(GlobalRole).order_by(
            GlobalRole.role_level, GlobalRole.sort_order, GlobalRole.name
        )
        if active_only:
            query = query.where(GlobalRole.is_active.is_(True))
        result = await db.execute(query)
        return list(result.scalars())

    async def get_role_tree(self, db: AsyncSession) -> list[RoleNode]:
        return build_role_tree(await self.list_roles(db))

    async def get_role(self, db: AsyncSession, role_id: UUID) -> GlobalRole:
        role = await db.get(GlobalRole, role_id)
        if role is None:
            raise NotFoundError("Role not found")
        return role

    async def _parents_by_id(self, db: AsyncSession) -> dict[UUID, Optional[UUID]]:
        result = await db.execute(select(GlobalRole.id, GlobalRole.parent_role_id))
        return {role_id: parent_id for role_id, parent_id in result.all()}

    async def _ensure_unique_name(
        self,
        db: AsyncSession,
        name: str,
        exclude_id: Optional[UUID] = None,
    ) -> None:
        query = select(GlobalRole.id).where(GlobalRole.name == name)
        if exclude_id is not None:
            query = query.where(GlobalRole.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError("A role with this name already exists")

    async def _validate_parent(
        self,
        db: AsyncSession,
        role_id: Optional[UUID],
        parent_role_id: Optional[UUID],
    ) -> None:
        if parent_role_id is None:
            return
        parents = await self._parents_by_id(db)
        if parent_role_id not in parents:
            raise InvalidRequestError("Parent role not found")
        if role_id is not None and would_create_cycle(parents, role_id, parent_role_id):
            raise InvalidRequestError("Parent role would create a cycle in the role hierarchy")

    async def create_role(self, db: AsyncSession, data: Mapping[str, Any]) -> GlobalRole:
        await self._ensure_unique_name(db, data["name"])
        await self._validate_parent(db, None, data.get("parent_role_id"))

        role = GlobalRole(**{key: value for key, value in data.items() if key in ROLE_FIELDS})
        db.add(role)
        await db.commit()

        logger.info("role_created", role_id=str(role.id), role_name=role.name)
        return role

    async def update_role(
        self,
        db: AsyncSession,
        role_id: UUID,
        changes: Mapping[str, Any],
    ) -> GlobalRole:
        """Atualização parcial; só os campos presentes em ``changes`` mudam."""
        role = await self.get_role(db, role_id)

        if changes.get("name") and changes["name"] != role.name:
            await self._ensure_unique_name(db, changes["name"], exclude_id=role.id)
        if "parent_role_id" in changes:
            await self._validate_parent(db, role.id, changes["parent_role_id"])

        for key, value in changes.items():
            if key in ROLE_FIELDS:
                setattr(role, key, value)
        await db.commit()

        logger.info("role_updated", role_id=str(role.id), fields=sorted(changes))
        return role

    async def delete_role(self, db: AsyncSession, role_id: UUID) -> None:
        role = await self.get_role(db, role_id)

        assigned = await db.execute(
            select(UserRole.id).where(UserRole.global_role_id == role_id).limit(1)
        )
        primary = await db.execute(
            select(User.id).where(User.primary_role_id == role_id).limit(1)
        )
        if assigned.first() is not None or primary.first() is not None:
            raise InvalidRequestError("Cannot delete role that is assigned to users")

        # Filhos sobem para a raiz
        children = await db.execute(select(GlobalRole).where(GlobalRole.parent_role_id == role_id))
        for child in children.scalars():
            child.parent_role_id = None

        await db.execute(delete(RoleModulePermission).where(RoleModulePermission.role_id == role_id))
        await db.execute(delete(RoleTabPermission).where(RoleTabPermission.role_id == role_id))
        await db.delete(role)
        await db.commit()
        logger.info("role_deleted", role_id=str(role_id))

    async def get_module_permissions(self, db: AsyncSession, role_id: UUID) -> list[UUID]:
        await self.get_role(db, role_id)
        result = await db.execute(
            select(RoleModulePermission.module_id).where(RoleModulePermission.role_id == role_id)
        )
        return list(result.scalars())

    async def set_module_permissions(
        self,
        db: AsyncSession,
        role_id: UUID,
        module_ids: Iterable[UUID],
    ) -> list[UUID]:
        """Substitui todas as permissões de módulo do role."""
        await self.get_role(db, role_id)
        unique_ids = list(dict.fromkeys(module_ids))

        if unique_ids:
            found = await db.execute(
                select(func.count()).select_from(GlobalModule).where(GlobalModule.id.in_(unique_ids))
            )
            if found.scalar_one() != len(unique_ids):
                raise InvalidRequestError("Unknown module in permissions")

        await db.execute(delete(RoleModulePermission).where(RoleModulePermission.role_id == role_id))
        db.add_all(RoleModulePermission(role_id=role_id, module_id=module_id) for module_id in unique_ids)
        await db.commit()

        logger.info("role_module_permissions_set", role_id=str(role_id), modules=len(unique_ids))
        return unique_ids

    async def get_tab_permissions(self, db: AsyncSession, role_id: UUID) -> list[tuple[str, str]]:
        await self.get_role(db, role_id)
        result = await db.execute(
            select(RoleTabPermission.module_name, RoleTabPermission.tab_name)
            .where(RoleTabPermission.role_id == role_id)
            .order_by(RoleTabPermission.module_name, RoleTabPermission.tab_name)
        )
        return [(module_name, tab_name) for module_name, tab_name in result.all()]

    async def set_tab_permissions(
        self,
        db: AsyncSession,
        role_id: UUID,
        tabs: Iterable[tuple[str, str]],
    ) -> list[tuple[str, str]]:
        """Substitui todas as permissões de aba do role (por identidade)."""
        await self.get_role(db, role_id)

        unique_tabs = list(
            dict.fromkeys(
                (module_name.strip(), tab_identity(tab_name))
                for module_name, tab_name in tabs
                if module_name and tab_name and tab_name.strip()
            )
        )

        await db.execute(delete(RoleTabPermission).where(RoleTabPermission.role_id == role_id))
        db.add_all(
            RoleTabPermission(role_id=role_id, module_name=module_name, tab_name=tab_name)
            for module_name, tab_name in unique_tabs
        )
        await db.commit()

        logger.info("role_tab_permissions_set", role_id=str(role_id), tabs=len(unique_tabs))
        return sorted(unique_tabs)

    async def assignable_roles(self, db: AsyncSession, user: User) -> list[GlobalRole]:
        """
        Roles que o usuário pode atribuir a outros.

        Admins atribuem qualquer role ativo; demais usuários só os roles
        abaixo do próprio role primário.
        """
        roles = await self.list_roles(db, active_only=True)
        if user.is_super_admin or user.is_tenant_admin:
            return roles
        if user.primary_role_id is None:
            return []

        below = descendant_ids(await self._parents_by_id(db), user.primary_role_id)
        return [role for role in roles if role.id in below]


def get_role_service() -> RoleService:
    """Dependency provider."""

    return RoleService()
