"""Usage analysis: per-file tier aggregation and per-model risk classification.

One UsageAnalyzer owns the state of one run: the model table, the source
cache and the resulting usage map. Two classifier modes share the detector
tiers:

- tiered: five risk levels driven by the strongest tag seen and the summed
  confidence (SAFE, PROBABLY_SAFE, SUSPICIOUS, LIKELY_UNUSED,
  DEFINITELY_UNUSED).
- strict: a binary real-usage verdict per file, reported as SAFE,
  SUSPICIOUS or DEFINITELY_UNUSED. Matches run on comment-free text with
  string literals kept, so route and URL literals count as evidence.
"""
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .detectors import DEFAULT_TIERS, DetectorTier, run_tier
from .file_walker import area_for
from .models import (
    MEDIUM_USAGE,
    STRONG_USAGE,
    WEAK_USAGE,
    AnalysisMode,
    FileAnalysis,
    FileArea,
    Model,
    ModelUsage,
    RiskLevel,
    SourceFile,
    UsageSignal,
    ordered_usage_types,
)
from .relationship_auditor import RelationshipAuditor, RelationshipFinding
from .source_cache import SourceCache


# Medium-tier confidence a model needs to be PROBABLY_SAFE
CONFIDENCE_THRESHOLD = 30
# Weak-tier confidence that lifts LIKELY_UNUSED to SUSPICIOUS
WEAK_CONFIDENCE_THRESHOLD = 20
# Matches a medium tier needs in one file to count as real usage
MEDIUM_TIER_MIN_MATCHES = 2

ModelInput = Union[Model, Mapping]


def classify(usage_types: Iterable, total_confidence: int) -> RiskLevel:
    """Apply the five-tier decision rule (first match wins).

    Args:
        usage_types: Usage-type tags seen across all files of a model
        total_confidence: Summed confidence across all files

    Returns:
        RiskLevel
    """
    tags = set(usage_types)

    if tags & STRONG_USAGE:
        return RiskLevel.SAFE
    if tags & MEDIUM_USAGE and total_confidence >= CONFIDENCE_THRESHOLD:
        return RiskLevel.PROBABLY_SAFE
    if tags & MEDIUM_USAGE or (tags & WEAK_USAGE and total_confidence >= WEAK_CONFIDENCE_THRESHOLD):
        return RiskLevel.SUSPICIOUS
    if tags & WEAK_USAGE:
        return RiskLevel.LIKELY_UNUSED
    return RiskLevel.DEFINITELY_UNUSED


def is_real_usage(signals: Sequence[UsageSignal]) -> bool:
    """Decide whether one file's signals prove genuine use of a model.

    Strong tiers always count. A medium tier counts only once one of its
    patterns matched MEDIUM_TIER_MIN_MATCHES times in the same file, so the
    case variants of a single occurrence never pass the gate together. Weak
    tiers never count.
    """
    for signal in signals:
        if signal.usage_type in STRONG_USAGE:
            return True
        if signal.usage_type in MEDIUM_USAGE and signal.max_pattern_matches >= MEDIUM_TIER_MIN_MATCHES:
            return True
    return False


class UsageAnalyzer:
    """Classify every declared model by how the codebase uses it."""

    def __init__(self, models: Iterable[ModelInput], files: Iterable[Union[str, Path]],
                 client_roots: Iterable[Union[str, Path]] = (),
                 server_root: Optional[Union[str, Path]] = None,
                 mode: Union[AnalysisMode, str] = AnalysisMode.TIERED,
                 tiers: Sequence[DetectorTier] = DEFAULT_TIERS,
                 cache: Optional[SourceCache] = None):
        """Initialize analyzer.

        Args:
            models: Schema models (Model objects or schema-parser dicts)
            files: Candidate source files from the walker
            client_roots: Prefixes marking client-area files
            server_root: Base for server display paths (optional)
            mode: 'tiered' or 'strict'
            tiers: Detector tiers, strongest first
            cache: Source cache to share (a fresh one by default)

        Raises:
            ValueError: On duplicate model names or an unknown mode
        """
        self.models: Dict[str, Model] = {}
        for item in models:
            model = item if isinstance(item, Model) else Model.from_dict(item)
            if model.name in self.models:
                raise ValueError(f"Duplicate model name in schema: {model.name}")
            self.models[model.name] = model

        self.files = [Path(f) for f in files]
        self.client_roots = [Path(r).resolve() for r in client_roots]
        self.server_root = Path(server_root).resolve() if server_root else None
        self.mode = AnalysisMode(mode)
        self.tiers = tuple(tiers)
        self.cache = cache if cache is not None else SourceCache()
        self.usage: Dict[str, ModelUsage] = {}

    def _display_path(self, path: Path, area: FileArea) -> str:
        resolved = path.resolve()
        bases = self.client_roots if area is FileArea.CLIENT else [self.server_root]
        for base in bases:
            if base is not None and resolved.is_relative_to(base):
                return resolved.relative_to(base).as_posix()
        return str(path)

    def _text_for(self, tier: DetectorTier, source: SourceFile) -> str:
        if tier.text_view == "raw":
            return source.raw
        if self.mode is AnalysisMode.STRICT:
            return source.code
        return source.clean

    def analyze_file(self, model_name: str, file_path: Union[str, Path]) -> Optional[FileAnalysis]:
        """Run every applicable tier for one model against one file.

        Args:
            model_name: Declared model name
            file_path: Source file path

        Returns:
            FileAnalysis, or None when no tier matched
        """
        path = Path(file_path)
        source = self.cache.get(path)
        area = area_for(path, self.client_roots)

        signals: List[UsageSignal] = []
        for tier in self.tiers:
            if not tier.applies_to(area):
                continue
            found = run_tier(tier.compile(model_name), self._text_for(tier, source))
            if found is None:
                continue
            signals.append(UsageSignal(
                usage_type=tier.usage_type,
                match_count=found.match_count,
                confidence=tier.weight,
                max_pattern_matches=found.max_pattern_matches,
                examples=found.examples,
                patterns=found.patterns,
            ))

        if not signals:
            return None

        return FileAnalysis(
            path=str(path),
            display_path=self._display_path(path, area),
            area=area,
            usage_types=ordered_usage_types({s.usage_type for s in signals}),
            usage_count=sum(s.match_count for s in signals),
            confidence=sum(s.confidence for s in signals),
            signals=signals,
            is_real_usage=is_real_usage(signals),
        )

    def analyze_model(self, model_name: str) -> ModelUsage:
        """Fold all per-file results for one model and classify it.

        Raises:
            KeyError: If the model is not declared
        """
        usage = ModelUsage(model=self.models[model_name])
        tags = set()

        for file_path in self.files:
            analysis = self.analyze_file(model_name, file_path)
            if analysis is None:
                continue

            usage.total_files += 1
            usage.total_confidence += analysis.confidence
            if analysis.is_client_file:
                usage.client_files += 1
            else:
                usage.server_files += 1
            if analysis.is_real_usage:
                usage.real_usage_files += 1
            tags.update(analysis.usage_types)
            usage.file_analyses.append(analysis)

        usage.usage_types = ordered_usage_types(tags)

        if self.mode is AnalysisMode.STRICT:
            usage.is_really_used = usage.real_usage_files > 0
            if usage.is_really_used:
                usage.risk_level = RiskLevel.SAFE
            elif usage.total_files > 0:
                usage.risk_level = RiskLevel.SUSPICIOUS
            else:
                usage.risk_level = RiskLevel.DEFINITELY_UNUSED
        else:
            usage.risk_level = classify(tags, usage.total_confidence)
            usage.is_really_used = usage.risk_level in (RiskLevel.SAFE, RiskLevel.PROBABLY_SAFE)

        return usage

    def analyze_all(self, progress: Optional[Callable[[ModelUsage], None]] = None) -> Dict[str, ModelUsage]:
        """Classify every declared model.

        Args:
            progress: Called with each ModelUsage as soon as it is computed

        Returns:
            Model name -> ModelUsage, in schema order
        """
        usage = {}
        for name in self.models:
            usage[name] = self.analyze_model(name)
            if progress is not None:
                progress(usage[name])
        self.usage = usage
        return usage

    def audit_relationships(self) -> Dict[str, RelationshipFinding]:
        """Run the relationship auditor over the latest classification."""
        if not self.usage:
            self.analyze_all()
        auditor = RelationshipAuditor(self.models.values())
        return auditor.audit({name: u.risk_level for name, u in self.usage.items()})
