from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Protocol

from story_clusters.config import load_yaml
from story_clusters.nlp import normalize_text
from story_clusters.types import SourceRole


_QUALITY_WEIGHTS = {
    "high": 1.25,
    "medium": 1.0,
}
_BASELINE_WEIGHT = 0.82

_STORY_ROLES = {"reporting", "official", "analysis", "opinion"}


@dataclass(frozen=True)
class SourceProfile:
    source_id: str
    name: str = ""
    quality_tier: str = "medium"
    story_role: SourceRole = "reporting"


class SourceRegistry(Protocol):
    """Read-only lookup of editorial metadata for a feed source."""

    def lookup(self, source_id: Optional[str]) -> Optional[SourceProfile]:
        ...


def source_quality_weight(tier: Optional[str]) -> float:
    return _QUALITY_WEIGHTS.get(str(tier or "").lower(), _BASELINE_WEIGHT)


def infer_story_role(
    source_name: Optional[str] = None,
    source_badge: Optional[str] = None,
    source_category: Optional[str] = None,
) -> SourceRole:
    """Best-effort role for sources the registry does not know about."""

    badge = normalize_text(source_badge)
    category = normalize_text(source_category)
    name = normalize_text(source_name)

    if "opinion" in badge or "op-ed" in badge or "commentary" in badge:
        return "opinion"
    if "policy doc" in badge or "release" in badge or category == "official":
        return "official"
    if category == "analysis":
        return "analysis"
    if "realcleardefense" in name:
        return "opinion"
    if "war on the rocks" in name or "csis" in name:
        return "analysis"
    return "reporting"


class StaticSourceRegistry:
    def __init__(self, profiles: Iterable[SourceProfile] = ()) -> None:
        self._by_id: dict[str, SourceProfile] = {}
        for p in profiles:
            self._by_id.setdefault(p.source_id, p)

    def __len__(self) -> int:
        return len(self._by_id)

    def lookup(self, source_id: Optional[str]) -> Optional[SourceProfile]:
        if not source_id:
            return None
        return self._by_id.get(source_id)

    @classmethod
    def from_records(cls, records: Iterable[dict[str, Any]]) -> "StaticSourceRegistry":
        profiles: list[SourceProfile] = []
        for r in records:
            sid = str(r.get("id") or "").strip()
            if not sid:
                continue
            role = str(r.get("story_role") or "").lower()
            if role not in _STORY_ROLES:
                role = infer_story_role(r.get("name"), r.get("source_badge"), r.get("category"))
            profiles.append(
                SourceProfile(
                    source_id=sid,
                    name=str(r.get("name") or ""),
                    quality_tier=str(r.get("quality_tier") or "medium").lower(),
                    story_role=role,  # type: ignore[arg-type]
                )
            )
        return cls(profiles)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "StaticSourceRegistry":
        return cls.from_records(load_yaml(path).get("sources", []) or [])


def resolve_base_role(
    registry: Optional[SourceRegistry],
    source_id: Optional[str],
    source_name: Optional[str] = None,
    source_badge: Optional[str] = None,
    source_category: Optional[str] = None,
) -> SourceRole:
    profile = registry.lookup(source_id) if registry is not None else None
    if profile is not None:
        return profile.story_role
    return infer_story_role(source_name, source_badge, source_category)


def resolve_quality_weight(registry: Optional[SourceRegistry], source_id: Optional[str]) -> float:
    profile = registry.lookup(source_id) if registry is not None else None
    return source_quality_weight(profile.quality_tier if profile is not None else "medium")
