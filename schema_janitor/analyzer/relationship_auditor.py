"""Relationship audit: which at-risk models are still referenced by live ones."""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping

import networkx as nx

from .models import Model, RiskLevel


@dataclass
class RelationshipFinding:
    """Referrers of one at-risk model."""
    model: str
    risk_level: RiskLevel
    referenced_by: List[str] = field(default_factory=list)
    safe_referrers: List[str] = field(default_factory=list)  # Referrers that are not at risk

    @property
    def is_dangerous(self) -> bool:
        """Removing the model would break a relation of a model still in use."""
        return bool(self.safe_referrers)

    def to_dict(self) -> Dict:
        return {
            "model": self.model,
            "risk_level": self.risk_level.value,
            "referenced_by": list(self.referenced_by),
            "safe_referrers": list(self.safe_referrers),
            "is_dangerous": self.is_dangerous,
        }


class RelationshipAuditor:
    """Single-hop lookup over declared relationships.

    Edge (A, B) in the graph means "model A declares a relation to model B".
    """

    def __init__(self, models: Iterable[Model]):
        """Build the relation graph.

        Args:
            models: Declared models, in schema order
        """
        models = list(models)
        self.graph = nx.DiGraph()
        self.order: Dict[str, int] = {}

        for index, model in enumerate(models):
            self.order[model.name] = index
            self.graph.add_node(model.name)

        for model in models:
            for relationship in model.relationships:
                # Self-relations (trees, linked lists) never block removal
                if relationship.model != model.name:
                    self.graph.add_edge(model.name, relationship.model)

    def referrers(self, model_name: str) -> List[str]:
        """Declared models with a relation targeting model_name, in schema order."""
        if model_name not in self.graph:
            return []
        referrers = [n for n in self.graph.predecessors(model_name) if n in self.order]
        return sorted(referrers, key=self.order.__getitem__)

    def audit(self, risk_levels: Mapping[str, RiskLevel]) -> Dict[str, RelationshipFinding]:
        """Find referrers for every at-risk model.

        Args:
            risk_levels: Model name -> RiskLevel from the classifier

        Returns:
            At-risk model name -> RelationshipFinding, in schema order
        """
        findings = {}

        for name in sorted(self.order, key=self.order.__getitem__):
            level = risk_levels.get(name)
            if level is None or not RiskLevel(level).is_at_risk:
                continue

            referenced_by = self.referrers(name)
            safe = [
                other for other in referenced_by
                if other in risk_levels and not RiskLevel(risk_levels[other]).is_at_risk
            ]
            findings[name] = RelationshipFinding(
                model=name,
                risk_level=RiskLevel(level),
                referenced_by=referenced_by,
                safe_referrers=safe,
            )

        return findings
