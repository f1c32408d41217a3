"""Stage catalog: the fixed ordered pipeline stages and their tag vocabulary.

The catalog is immutable configuration. Categorization and metrics take it as
an argument so alternate stage sets can be used without touching module state.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models import PipelineStage


@dataclass(frozen=True)
class StageCatalog:
    """Ordered pipeline stages plus tag matching and conversion lookups."""

    stages: Tuple[PipelineStage, ...]
    tag_aliases: Mapping[str, str] = field(default_factory=dict)
    conversion_rates: Mapping[str, float] = field(default_factory=dict)
    default_stage: Optional[str] = None

    def __post_init__(self) -> None:
        titles = [stage.title for stage in self.stages]
        if not titles:
            raise ValueError("A stage catalog needs at least one stage")
        if len(set(titles)) != len(titles):
            raise ValueError(f"Stage titles must be unique: {titles}")
        default = self.default_stage or titles[0]
        if default not in titles:
            raise ValueError(f"Default stage '{default}' is not one of {titles}")
        for alias, title in self.tag_aliases.items():
            if title not in titles:
                raise ValueError(f"Tag alias '{alias}' points at unknown stage '{title}'")

        tag_map: Dict[str, str] = {}
        for stage in self.stages:
            for tag in stage.tags or (stage.title,):
                tag_map.setdefault(tag.lower(), stage.title)
        for alias, title in self.tag_aliases.items():
            tag_map[alias.lower()] = title

        object.__setattr__(self, "default_stage", default)
        object.__setattr__(self, "tag_aliases", MappingProxyType(dict(self.tag_aliases)))
        object.__setattr__(self, "conversion_rates", MappingProxyType(dict(self.conversion_rates)))
        object.__setattr__(self, "_tag_map", MappingProxyType(tag_map))

    @property
    def titles(self) -> List[str]:
        return [stage.title for stage in self.stages]

    @property
    def tag_stage_map(self) -> Mapping[str, str]:
        """Lower-cased tag → stage title used when no explicit stage field exists."""
        return self._tag_map  # type: ignore[attr-defined]

    @property
    def vocabulary(self) -> Tuple[str, ...]:
        """Every canonical stage tag, in stage order, without duplicates."""
        seen: List[str] = []
        for stage in self.stages:
            for tag in stage.tags or (stage.title,):
                if tag not in seen:
                    seen.append(tag)
        return tuple(seen)

    def has_stage(self, title: Any) -> bool:
        return isinstance(title, str) and title in self.titles

    def get(self, title: str) -> Optional[PipelineStage]:
        for stage in self.stages:
            if stage.title == title:
                return stage
        return None

    def tags_for(self, title: str) -> List[str]:
        stage = self.get(title)
        if stage is None:
            return []
        return list(stage.tags or (stage.title,))

    def stage_tag(self, title: str) -> str:
        """Return the canonical tag for ``title``, falling back to the default stage's tag."""
        stage = self.get(title) or self.get(self.default_stage)  # type: ignore[arg-type]
        if stage is None:
            raise LookupError(f"Default stage '{self.default_stage}' is not in the catalog")
        return stage.stage_tag

    def match_tag(self, tag: Any) -> Optional[str]:
        if not isinstance(tag, str):
            return None
        return self.tag_stage_map.get(tag.lower())

    def conversion_rate(self, title: str) -> float:
        return self.conversion_rates.get(title, 0)

    @classmethod
    def from_config(cls, data: Mapping[str, Any]) -> "StageCatalog":
        """Build a catalog from the ``pipeline`` section of a configuration file."""

        raw_stages: Sequence[Any] = data.get("stages") or []
        aliases = dict(data.get("tag_aliases") or {})
        rates = {str(k): float(v) for k, v in (data.get("conversion_rates") or {}).items()}
        if raw_stages:
            return cls(
                stages=tuple(_stage_from_config(entry) for entry in raw_stages),
                tag_aliases=aliases,
                conversion_rates=rates,
                default_stage=data.get("default_stage"),
            )

        # Overrides without a stage list are layered over the default catalog.
        if not aliases and not rates and not data.get("default_stage"):
            return DEFAULT_CATALOG
        return cls(
            stages=DEFAULT_CATALOG.stages,
            tag_aliases={**DEFAULT_CATALOG.tag_aliases, **aliases},
            conversion_rates={**DEFAULT_CATALOG.conversion_rates, **rates},
            default_stage=data.get("default_stage") or DEFAULT_CATALOG.default_stage,
        )


def _stage_from_config(entry: Any) -> PipelineStage:
    if isinstance(entry, str):
        return PipelineStage(title=entry, color="", icon="", tags=(entry,))
    if not isinstance(entry, Mapping) or not entry.get("title"):
        raise ValueError(f"Invalid stage entry: {entry!r}")
    tags: Iterable[str] = entry.get("tags") or (entry["title"],)
    return PipelineStage(
        title=str(entry["title"]),
        color=str(entry.get("color", "")),
        icon=str(entry.get("icon", "")),
        tags=tuple(str(tag) for tag in tags),
    )


DEFAULT_STAGES: Tuple[PipelineStage, ...] = (
    PipelineStage("New Lead", "bg-teal-600", "\U0001F464", ("New Lead",)),
    PipelineStage("Contacted", "bg-gray-500", "\U0001F4DE", ("Contacted",)),
    PipelineStage("Application Started", "bg-blue-500", "\U0001F4DD", ("Application Started",)),
    PipelineStage("Pre-Approved", "bg-red-500", "✅", ("Pre-Approved",)),
    PipelineStage("In Underwriting", "bg-orange-500", "\U0001F50D", ("In Underwriting",)),
    PipelineStage("Closed", "bg-green-500", "\U0001F3AF", ("Closed",)),
)

# Placeholder rates carried over from the dashboard; not derived from data.
DEFAULT_CONVERSION_RATES: Dict[str, float] = {
    "New Lead": 12,
    "Contacted": 10,
    "Application Started": 8,
    "Pre-Approved": 5,
    "In Underwriting": 3,
    "Closed": 2,
}

DEFAULT_CATALOG = StageCatalog(
    stages=DEFAULT_STAGES,
    tag_aliases={"pre approved": "Pre-Approved"},
    conversion_rates=DEFAULT_CONVERSION_RATES,
    default_stage="New Lead",
)


__all__ = ["StageCatalog", "DEFAULT_STAGES", "DEFAULT_CONVERSION_RATES", "DEFAULT_CATALOG"]
