"""JSON report assembly and export."""
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Mapping, Union

from ..analyzer.models import AnalysisMode, ModelUsage, RiskLevel, UsageType
from ..analyzer.relationship_auditor import RelationshipFinding
from ..analyzer.usage_analyzer import CONFIDENCE_THRESHOLD
from ..config import __version__


TOP_USAGE_FILES = 5

RECOMMENDATIONS = {
    RiskLevel.DEFINITELY_UNUSED: {
        "action": "REMOVE",
        "priority": "HIGH",
        "reason": "No usage found in codebase",
        "confidence": "VERY_HIGH",
    },
    RiskLevel.LIKELY_UNUSED: {
        "action": "REVIEW_AND_LIKELY_REMOVE",
        "priority": "MEDIUM",
        "reason": "Only weak usage indicators found",
        "confidence": "HIGH",
    },
    RiskLevel.SUSPICIOUS: {
        "action": "MANUAL_REVIEW",
        "priority": "LOW",
        "reason": "Mixed usage signals - needs human verification",
        "confidence": "MEDIUM",
    },
}

ANALYSIS_METHODS = {
    AnalysisMode.TIERED: "comprehensive_pattern_matching",
    AnalysisMode.STRICT: "strict_real_usage",
}

SUSPICIOUS_REASON = "Only weak indicators found (imports, comments, etc.)"


def group_by_risk(usages: Mapping[str, ModelUsage]) -> Dict[RiskLevel, List[ModelUsage]]:
    """Bucket models by risk level, every level present, schema order kept."""
    groups: Dict[RiskLevel, List[ModelUsage]] = {level: [] for level in RiskLevel}
    for usage in usages.values():
        groups[usage.risk_level].append(usage)
    return groups


def build_recommendations(usages: Mapping[str, ModelUsage]) -> List[Dict]:
    """One recommendation per at-risk model."""
    recommendations = []
    for name, usage in usages.items():
        advice = RECOMMENDATIONS.get(usage.risk_level)
        if advice is not None:
            recommendations.append({"model": name, **advice})
    return recommendations


def real_usage_entries(usage: ModelUsage) -> List[Dict]:
    """Files that prove genuine use, with their non-weak usage types."""
    return [
        {
            "file": analysis.display_path,
            "usage_types": [t.value for t in analysis.usage_types if t is not UsageType.WEAK_INDICATOR],
        }
        for analysis in usage.file_analyses
        if analysis.is_real_usage
    ]


def real_usage_rate(usages: Mapping[str, ModelUsage]) -> float:
    """Percentage of models really used, one decimal place."""
    if not usages:
        return 0.0
    really_used = sum(1 for usage in usages.values() if usage.is_really_used)
    return round(really_used / len(usages) * 100, 1)


def build_report(usages: Mapping[str, ModelUsage],
                 findings: Mapping[str, RelationshipFinding],
                 mode: Union[AnalysisMode, str] = AnalysisMode.TIERED) -> Dict:
    """Assemble the exportable analysis report.

    Args:
        usages: Classifier output
        findings: Relationship auditor output
        mode: Analysis mode the usages were produced with

    Returns:
        JSON-serializable dictionary
    """
    mode = AnalysisMode(mode)
    groups = group_by_risk(usages)

    models = {}
    for name, usage in usages.items():
        entry = {
            "risk_level": usage.risk_level.value,
            "is_really_used": usage.is_really_used,
            "confidence": usage.total_confidence,
            "total_files": usage.total_files,
            "server_files": usage.server_files,
            "client_files": usage.client_files,
            "real_usage_files": usage.real_usage_files,
            "usage_types": [t.value for t in usage.usage_types],
            "relationships": [r.model for r in usage.model.relationships],
            "top_usage_files": [
                {
                    "file": analysis.display_path,
                    "confidence": analysis.confidence,
                    "usage_types": [t.value for t in analysis.usage_types],
                }
                for analysis in usage.top_files(TOP_USAGE_FILES)
            ],
            "real_usage": real_usage_entries(usage),
        }
        if mode is AnalysisMode.STRICT and usage.risk_level is RiskLevel.SUSPICIOUS:
            entry["mentioned_in_files"] = [a.display_path for a in usage.file_analyses]
            entry["reason"] = SUSPICIOUS_REASON
        models[name] = entry

    really_used = sum(1 for usage in usages.values() if usage.is_really_used)

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "summary": {
            "total_models": len(usages),
            "safe_models": len(groups[RiskLevel.SAFE]) + len(groups[RiskLevel.PROBABLY_SAFE]),
            "risky_models": len(groups[RiskLevel.SUSPICIOUS]) + len(groups[RiskLevel.LIKELY_UNUSED]),
            "unused_models": len(groups[RiskLevel.DEFINITELY_UNUSED]),
            "really_used_models": really_used,
            "real_usage_rate": real_usage_rate(usages),
            "can_likely_be_removed": len(usages) - really_used,
            "analysis_method": ANALYSIS_METHODS[mode],
            "confidence_threshold": CONFIDENCE_THRESHOLD,
        },
        "models": models,
        "relationships": {name: finding.to_dict() for name, finding in findings.items()},
        "recommendations": build_recommendations(usages),
    }


def export_report(report: Dict, output_path: Union[str, Path]) -> Path:
    """Write a report to disk atomically.

    Args:
        report: Dictionary from build_report()
        output_path: Destination JSON file

    Returns:
        Path written

    Raises:
        OSError: If the destination cannot be written
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    # Write to temp file first for atomic operation
    temp_path = output_path.with_suffix(output_path.suffix + '.tmp')
    with open(temp_path, 'w', encoding='utf-8') as f:
        json.dump(report, f, indent=2, ensure_ascii=False)

    temp_path.replace(output_path)
    return output_path
