"""
Variantes de override de aba por organização.

Uma identidade de aba dentro de um módulo está sempre em exatamente um
estado para a organização: padrão (sem linha), escondida ou adicionada.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union
from uuid import UUID

OVERRIDE_HIDDEN = "hidden"
OVERRIDE_ADD = "add"


def tab_identity(tab_name: str) -> str:
    """Chave de identidade de uma aba dentro do módulo."""
    return tab_name.strip()


@dataclass(frozen=True)
class HiddenOverride:
    """Esconde a aba global com esta identidade."""

    tab_name: str
    global_tab_id: Optional[UUID] = None

    @property
    def identity(self) -> str:
        return tab_identity(self.tab_name)


@dataclass(frozen=True)
class AddedOverride:
    """Aba exclusiva da organização, apontando para um relatório implantado."""

    tab_name: str
    organization_report_id: UUID
    page_name: str
    sort_order: int = 0

    @property
    def identity(self) -> str:
        return tab_identity(self.tab_name)


TabOverride = Union[HiddenOverride, AddedOverride]
