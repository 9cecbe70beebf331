from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class Layer(str, Enum):
    """Resource layers, declared from lowest to highest precedence."""

    CORE = "core"
    ORG = "org"
    CUSTOM = "custom"
    RUNTIME = "runtime"

    @property
    def precedence(self) -> int:
        return LAYER_ORDER.index(self)

    @property
    def badge(self) -> str:
        return f"[{self.value.upper()}]"


LAYER_ORDER: tuple[Layer, ...] = tuple(Layer)

RESOURCE_TYPES: tuple[str, ...] = (
    "agents",
    "tasks",
    "templates",
    "checklists",
    "data",
    "workflows",
    "utils",
    "agent-teams",
)

# Types a user may scaffold with `res create`
CREATABLE_TYPES: tuple[str, ...] = (
    "agents",
    "checklists",
    "templates",
    "data",
    "tasks",
    "workflows",
    "utils",
)

SEARCHABLE_TYPES: tuple[str, ...] = (
    "checklists",
    "templates",
    "data",
    "tasks",
    "workflows",
    "utils",
    "agents",
)

RESOURCE_EXTENSIONS: tuple[str, ...] = (".md", ".yaml", ".yml")

DEFAULT_CORE_SYSTEM = "bmad-core"


def base_name(name: str) -> str:
    """Strip a known resource extension from a name."""
    lowered = name.lower()
    for ext in RESOURCE_EXTENSIONS:
        if lowered.endswith(ext):
            return name[: -len(ext)]
    return name


class Resource(BaseModel):
    type: str
    name: str
    source: Layer
    path: Path
    content: Optional[str] = None

    @property
    def base_name(self) -> str:
        return base_name(self.name)


class ResourceConflict(BaseModel):
    """An existing resource that a requested name would collide with."""
    requested: str
    winner: Resource
    shadowed: List[Resource] = Field(default_factory=list)

    @property
    def layers(self) -> List[Layer]:
        return [self.winner.source, *(r.source for r in self.shadowed)]


# Core systems

class CoreSystemMeta(BaseModel):
    name: str = Field(..., pattern="^[a-zA-Z0-9_-]+$")
    description: str = ""
    version: str = Field(default="0.0.0", pattern="^\\d+\\.\\d+\\.\\d+$")


# Runtime configuration

class TechStack(BaseModel):
    languages: List[str] = Field(default_factory=list)
    frameworks: List[str] = Field(default_factory=list)
    build_tools: List[str] = Field(default_factory=list)
    notes: Optional[str] = None


class RuntimeConfig(BaseModel):
    core_system: str = Field(default=DEFAULT_CORE_SYSTEM, pattern="^[a-zA-Z0-9_-]+$")
    fallback_core_system: Optional[str] = Field(default=None, pattern="^[a-zA-Z0-9_-]+$")
    version: str = "1.0.0"
    installed_at: Optional[str] = None
    tech_stack: TechStack = Field(default_factory=TechStack)


class PodInfo(BaseModel):
    name: str = ""
    id: str = ""
    owner: str = ""


class UserSettings(BaseModel):
    pod: PodInfo = Field(default_factory=PodInfo)
    preferences: Dict[str, str] = Field(default_factory=dict)
