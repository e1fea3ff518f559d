"""Data model for schema usage analysis."""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


class UsageType(str, Enum):
    """Category of evidence a detector tier produces (declared in tier order)."""
    DATABASE_OPERATION = "DATABASE_OPERATION"
    API_ENDPOINT = "API_ENDPOINT"
    TYPE_DEFINITION = "TYPE_DEFINITION"
    BUSINESS_LOGIC = "BUSINESS_LOGIC"
    CLIENT_OPERATION = "CLIENT_OPERATION"
    SCHEMA_REFERENCE = "SCHEMA_REFERENCE"
    WEAK_INDICATOR = "WEAK_INDICATOR"


STRONG_USAGE = frozenset({UsageType.DATABASE_OPERATION, UsageType.API_ENDPOINT})
MEDIUM_USAGE = frozenset({
    UsageType.TYPE_DEFINITION,
    UsageType.BUSINESS_LOGIC,
    UsageType.CLIENT_OPERATION,
})
WEAK_USAGE = frozenset({UsageType.WEAK_INDICATOR, UsageType.SCHEMA_REFERENCE})

_TIER_ORDER = {usage_type: index for index, usage_type in enumerate(UsageType)}


def ordered_usage_types(usage_types) -> List[UsageType]:
    """Return usage types sorted in tier order (strongest first)."""
    return sorted(usage_types, key=_TIER_ORDER.__getitem__)


class RiskLevel(str, Enum):
    """Final classification of a model's likely-usage status."""
    SAFE = "SAFE"
    PROBABLY_SAFE = "PROBABLY_SAFE"
    SUSPICIOUS = "SUSPICIOUS"
    LIKELY_UNUSED = "LIKELY_UNUSED"
    DEFINITELY_UNUSED = "DEFINITELY_UNUSED"

    @property
    def is_at_risk(self) -> bool:
        return self in (RiskLevel.SUSPICIOUS, RiskLevel.LIKELY_UNUSED, RiskLevel.DEFINITELY_UNUSED)


class AnalysisMode(str, Enum):
    """Classifier flavour: five risk tiers, or a binary real-usage verdict."""
    TIERED = "tiered"
    STRICT = "strict"


class FileArea(str, Enum):
    SERVER = "server"
    CLIENT = "client"


@dataclass(frozen=True)
class Field:
    """A scalar or relation field declared on a model."""
    name: str
    type: str  # Declared type string, e.g. 'String', 'OrderItem[]', 'User?'


@dataclass(frozen=True)
class Relationship:
    """A relation field pointing at another model."""
    field: str
    model: str  # Target model name
    is_array: bool = False


@dataclass(frozen=True)
class Model:
    """A declared schema entity."""
    name: str
    fields: Tuple[Field, ...] = ()
    relationships: Tuple[Relationship, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Model":
        """Build a Model from schema-parser output.

        Accepts both `isArray` and `is_array` for relationship cardinality.
        """
        fields = tuple(
            Field(name=f["name"], type=f.get("type", ""))
            for f in data.get("fields", [])
        )
        relationships = tuple(
            Relationship(
                field=r.get("field", ""),
                model=r["model"],
                is_array=bool(r.get("isArray", r.get("is_array", False))),
            )
            for r in data.get("relationships", [])
        )
        return cls(name=data["name"], fields=fields, relationships=relationships)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "fields": [{"name": f.name, "type": f.type} for f in self.fields],
            "relationships": [
                {"field": r.field, "model": r.model, "isArray": r.is_array}
                for r in self.relationships
            ],
        }


@dataclass(frozen=True)
class SourceFile:
    """Cached dual text representation of one file."""
    path: Path
    raw: str
    clean: str  # Comments and string/template literals suppressed
    code: str  # Comments suppressed, literals kept
    readable: bool = True


@dataclass
class UsageSignal:
    """Result of one detector tier matching one (model, file) pair."""
    usage_type: UsageType
    match_count: int
    confidence: int  # Flat tier weight, independent of match_count
    max_pattern_matches: int = 0  # Most hits of a single pattern; drives the real-usage gate
    examples: List[str] = field(default_factory=list)
    patterns: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.usage_type.value,
            "matches": self.match_count,
            "max_pattern_matches": self.max_pattern_matches,
            "confidence": self.confidence,
            "examples": list(self.examples),
            "patterns": list(self.patterns),
        }


@dataclass
class FileAnalysis:
    """All tier signals for one model in one file."""
    path: str
    display_path: str  # Relative to the area root when possible
    area: FileArea
    usage_types: List[UsageType] = field(default_factory=list)
    usage_count: int = 0
    confidence: int = 0
    signals: List[UsageSignal] = field(default_factory=list)
    is_real_usage: bool = False

    @property
    def is_client_file(self) -> bool:
        return self.area is FileArea.CLIENT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.display_path,
            "area": self.area.value,
            "usage_types": [t.value for t in self.usage_types],
            "usage_count": self.usage_count,
            "confidence": self.confidence,
            "is_real_usage": self.is_real_usage,
            "signals": [s.to_dict() for s in self.signals],
        }


@dataclass
class ModelUsage:
    """Aggregated usage evidence and verdict for one model."""
    model: Model
    total_confidence: int = 0
    total_files: int = 0
    server_files: int = 0
    client_files: int = 0
    usage_types: List[UsageType] = field(default_factory=list)
    file_analyses: List[FileAnalysis] = field(default_factory=list)
    real_usage_files: int = 0
    is_really_used: bool = False
    risk_level: RiskLevel = RiskLevel.DEFINITELY_UNUSED

    @property
    def name(self) -> str:
        return self.model.name

    def top_files(self, limit: Optional[int] = None) -> List[FileAnalysis]:
        """File analyses by descending confidence (stable on ties)."""
        ranked = sorted(self.file_analyses, key=lambda a: a.confidence, reverse=True)
        return ranked if limit is None else ranked[:limit]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model.name,
            "risk_level": self.risk_level.value,
            "is_really_used": self.is_really_used,
            "confidence": self.total_confidence,
            "total_files": self.total_files,
            "server_files": self.server_files,
            "client_files": self.client_files,
            "real_usage_files": self.real_usage_files,
            "usage_types": [t.value for t in self.usage_types],
            "files": [a.to_dict() for a in self.file_analyses],
        }
