from sis_portal.db.models.organization import Organization
from sis_portal.db.models.module import GlobalModule, OrganizationModule
from sis_portal.db.models.report import PowerBIReport, OrganizationReport
from sis_portal.db.models.tab import ModuleTab, TenantModuleTab
from sis_portal.db.models.role import GlobalRole, RoleModulePermission, RoleTabPermission
from sis_portal.db.models.user import User, UserRole
from sis_portal.db.models.ai import AIPrompt, AISummary, SystemSettings

__all__ = [
    "Organization",
    "GlobalModule",
    "OrganizationModule",
    "PowerBIReport",
    "OrganizationReport",
    "ModuleTab",
    "TenantModuleTab",
    "GlobalRole",
    "RoleModulePermission",
    "RoleTabPermission",
    "User",
    "UserRole",
    "AIPrompt",
    "AISummary",
    "SystemSettings",
]
