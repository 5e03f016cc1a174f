"""Skill catalog and schema-validated dispatch."""

from agent_stream.skills.gateway import SkillGateway
from agent_stream.skills.outcomes import DeferToEngine, DispatchResult, SkillError
from agent_stream.skills.registry import SkillCatalog, SkillSpec, build_catalog, build_registry

__all__ = [
    "DeferToEngine",
    "DispatchResult",
    "SkillCatalog",
    "SkillError",
    "SkillGateway",
    "SkillSpec",
    "build_catalog",
    "build_registry",
]
