"""Detector tiers: layered regex heuristics for model usage.

Each tier groups patterns that share one intent (database call, API route,
type usage...), one usage-type tag and one flat confidence weight. Patterns
are written as templates with `{model}` / `{lower}` placeholders; the model
name is always passed through re.escape() before substitution, so an unusual
identifier can never change the shape of the expression.
"""
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Sequence, Set, Tuple

from .models import FileArea, UsageType


CRUD_VERBS = (
    "create|createMany|findFirst|findUnique|findMany|update|updateMany"
    "|upsert|delete|deleteMany|count|aggregate|groupBy"
)
TX_VERBS = "create|findFirst|findUnique|findMany|update|updateMany|upsert|delete|deleteMany"
HTTP_VERBS = "get|post|put|delete|patch"

# Any quote character: a URL or path literal
Q = "['\"`]"
NQ = "[^'\"`]*"

# Tier weights
DATABASE_OPERATION_WEIGHT = 40
API_ENDPOINT_WEIGHT = 35
TYPE_DEFINITION_WEIGHT = 25
BUSINESS_LOGIC_WEIGHT = 20
CLIENT_OPERATION_WEIGHT = 20
SCHEMA_REFERENCE_WEIGHT = 15
WEAK_INDICATOR_WEIGHT = 2

# Literal matches kept per signal for diagnostics
MAX_EXAMPLES = 3


@dataclass(frozen=True)
class PatternTemplate:
    """A regex source with model-name placeholders.

    `{model}` is replaced by the escaped declared name, `{lower}` by the
    escaped lower-cased name. Nothing else in the source is interpreted, so
    regex braces such as `\\{` or `{2}` pass through untouched.
    """
    source: str
    ignore_case: bool = False

    def render(self, model_name: str) -> str:
        return (
            self.source
            .replace("{model}", re.escape(model_name))
            .replace("{lower}", re.escape(model_name.lower()))
        )

    def compile(self, model_name: str) -> re.Pattern:
        flags = re.IGNORECASE if self.ignore_case else 0
        return re.compile(self.render(model_name), flags)


def ci(source: str) -> PatternTemplate:
    """Case-insensitive template."""
    return PatternTemplate(source, ignore_case=True)


def cs(source: str) -> PatternTemplate:
    """Case-sensitive template."""
    return PatternTemplate(source, ignore_case=False)


@dataclass(frozen=True)
class DetectorTier:
    """One heuristic rule group with a fixed weight and usage-type tag."""
    usage_type: UsageType
    weight: int
    templates: Tuple[PatternTemplate, ...]
    text_view: str = "clean"  # 'clean' or 'raw'
    area: Optional[FileArea] = None  # None means both areas

    def applies_to(self, area: FileArea) -> bool:
        return self.area is None or self.area is area

    def compile(self, model_name: str) -> Tuple[re.Pattern, ...]:
        return _compile_tier(self, model_name)


@lru_cache(maxsize=None)
def _compile_tier(tier: DetectorTier, model_name: str) -> Tuple[re.Pattern, ...]:
    return tuple(template.compile(model_name) for template in tier.templates)


@dataclass
class TierMatch:
    """Raw outcome of running one tier over one text."""
    match_count: int  # Distinct occurrences, not pattern hits
    max_pattern_matches: int  # Most matches of any single pattern
    examples: List[str]
    patterns: List[str]


def run_tier(patterns: Sequence[re.Pattern], text: str) -> Optional[TierMatch]:
    """Apply every pattern of a tier to a text.

    Case-sensitive and case-insensitive variants of one intent usually hit
    the same occurrence, so matches are counted by start offset: one
    occurrence seen by several patterns of the tier counts once. The
    per-pattern maximum is kept separately for the real-usage gate.

    Args:
        patterns: Compiled tier patterns
        text: File content in the tier's text view

    Returns:
        TierMatch if at least one pattern matched, otherwise None
    """
    if not text:
        return None

    starts: Set[int] = set()
    most = 0
    examples: List[str] = []
    fired: List[str] = []

    for pattern in patterns:
        count = 0
        for match in pattern.finditer(text):
            count += 1
            if match.start() in starts:
                continue
            starts.add(match.start())
            if len(examples) < MAX_EXAMPLES:
                examples.append(match.group(0).strip())
        if count:
            most = max(most, count)
            fired.append(pattern.pattern)

    if not starts:
        return None
    return TierMatch(match_count=len(starts), max_pattern_matches=most,
                     examples=examples, patterns=fired)


def build_tiers(db_handles: Sequence[str] = ("prisma",)) -> Tuple[DetectorTier, ...]:
    """Build the standard detector tiers, strongest first.

    Args:
        db_handles: Identifiers of the ORM client object (e.g. 'prisma', 'db')

    Returns:
        Tuple of DetectorTier in tier order
    """
    handles = "|".join(re.escape(h) for h in db_handles) or "prisma"
    handle = f"(?:{handles})"

    database = DetectorTier(
        usage_type=UsageType.DATABASE_OPERATION,
        weight=DATABASE_OPERATION_WEIGHT,
        area=FileArea.SERVER,
        templates=(
            ci(handle + r"\.{lower}\.(" + CRUD_VERBS + r")\s*\("),
            cs(handle + r"\.{model}\.(" + CRUD_VERBS + r")\s*\("),
            # Interactive transactions
            ci(r"tx\.{lower}\.(" + TX_VERBS + ")"),
            cs(r"tx\.{model}\.(" + TX_VERBS + ")"),
            # Raw SQL escape hatches
            ci(r"\$queryRaw.*{model}"),
            ci(r"\$executeRaw.*{model}"),
            # Relation loading
            ci(r"include:\s*\{[^}]*{lower}[^}]*\}"),
            cs(r"include:\s*\{[^}]*{model}[^}]*\}"),
        ),
    )

    api = DetectorTier(
        usage_type=UsageType.API_ENDPOINT,
        weight=API_ENDPOINT_WEIGHT,
        templates=(
            # Route registration
            ci(r"\.(" + HTTP_VERBS + r")\s*\([^)]*" + Q + NQ + "{lower}" + NQ + Q),
            cs(r"\.(" + HTTP_VERBS + r")\s*\([^)]*" + Q + NQ + "{model}" + NQ + Q),
            # Route parameters, body and query
            ci(r"req\.(params|body|query)\.\w*{lower}"),
            cs(r"req\.(params|body|query)\.\w*{model}"),
            # API path literals
            ci(Q + "/api/" + NQ + "{lower}" + NQ + Q),
            ci(Q + "/" + NQ + "{lower}" + NQ + Q),
            # Outbound HTTP calls
            ci(r"(axios|fetch)\s*\([^)]*" + Q + NQ + "{lower}" + NQ + Q),
            ci(r"(" + HTTP_VERBS + r")\s*\([^)]*" + Q + NQ + "{lower}" + NQ + Q),
            # GraphQL resolvers
            ci(r"{model}\s*:\s*\{[^}]*resolver"),
            ci(r"Query\.{lower}"),
            ci(r"Mutation\.{lower}"),
        ),
    )

    types = DetectorTier(
        usage_type=UsageType.TYPE_DEFINITION,
        weight=TYPE_DEFINITION_WEIGHT,
        templates=(
            ci(r"interface\s+\w*{model}\w*\s*\{"),
            ci(r"type\s+\w*{model}\w*\s*="),
            # Parameter and return annotations
            cs(r":\s*{model}\s*[\[\]]*\s*[=,\)\}]"),
            cs(r":\s*{model}\[\]"),
            # Generics
            cs(r"<[^>]*{model}[^>]*>"),
            cs(r"(const|let|var)\s+\w+\s*:\s*{model}"),
        ),
    )

    business = DetectorTier(
        usage_type=UsageType.BUSINESS_LOGIC,
        weight=BUSINESS_LOGIC_WEIGHT,
        templates=(
            ci(r"\w*Service\.\w*{lower}"),
            ci(r"\w*Repository\.\w*{lower}"),
            ci(r"\w*API\.\w*{lower}"),
            ci(r"(function|const|let)\s+\w*{lower}\w*"),
            cs(r"(function|const|let)\s+\w*{model}\w*"),
            ci(r"\.(get|create|update|delete|fetch|save|load){model}"),
            ci(r"\.(get|create|update|delete|fetch|save|load){lower}"),
            # State slices and action creators
            ci(r"{lower}Slice"),
            cs(r"{model}Slice"),
            cs(r"(set|update|delete|fetch|create){model}"),
            # Validation and transformation helpers
            ci(r"validate{model}"),
            ci(r"transform{model}"),
            ci(r"serialize{model}"),
        ),
    )

    client = DetectorTier(
        usage_type=UsageType.CLIENT_OPERATION,
        weight=CLIENT_OPERATION_WEIGHT,
        area=FileArea.CLIENT,
        templates=(
            # Hooks
            ci(r"use{model}"),
            ci(r"use\w*{model}\w*"),
            # Component props and state
            ci(r"{model}Props"),
            ci(r"{model}State"),
            ci(r"{model}Data"),
            # Global state
            ci(r"state\.{lower}"),
            cs(r"state\.{model}"),
            ci(r"useSelector.*{lower}"),
            # Forms
            ci(r"{model}Form"),
            ci(r"validate{model}"),
            # Navigation
            ci(r"navigate.*{lower}"),
            ci(r"router.*{lower}"),
            # API service objects and data mapping
            ci(r"{lower}Service"),
            ci(r"transform{model}"),
            ci(r"deserialize{model}"),
        ),
    )

    schema = DetectorTier(
        usage_type=UsageType.SCHEMA_REFERENCE,
        weight=SCHEMA_REFERENCE_WEIGHT,
        text_view="raw",
        templates=(
            ci(r"@relation.*{model}"),
            ci(r"references.*{model}"),
            # Migrations
            ci(r"CREATE TABLE.*{model}"),
            ci(r"ALTER TABLE.*{model}"),
            ci(r"DROP TABLE.*{model}"),
            # Seed data
            ci(r"{lower}.*seed"),
            ci(r"seed.*{lower}"),
        ),
    )

    weak = DetectorTier(
        usage_type=UsageType.WEAK_INDICATOR,
        weight=WEAK_INDICATOR_WEIGHT,
        templates=(
            ci(r"import.*{model}"),
            ci(r"from.*{model}"),
            ci(Q + "{lower}" + Q),
            cs(Q + "{model}" + Q),
            cs(r"\b{model}\b"),
        ),
    )

    return (database, api, types, business, client, schema, weak)


DEFAULT_TIERS = build_tiers()
