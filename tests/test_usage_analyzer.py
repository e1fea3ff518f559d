"""Tests for per-file aggregation and per-model classification.

Each scenario builds a small server/client tree in tmp_path and runs the
analyzer over exactly the files it wrote.
"""
import json

import pytest

from schema_janitor.analyzer.file_walker import FileWalker
from schema_janitor.analyzer.models import (
    AnalysisMode,
    Model,
    Relationship,
    RiskLevel,
    UsageSignal,
    UsageType,
)
from schema_janitor.analyzer.schema_parser import SchemaParser
from schema_janitor.analyzer.source_cache import SourceCache
from schema_janitor.analyzer.usage_analyzer import UsageAnalyzer, classify, is_real_usage


WIDGET = Model(name='Widget')


def analyze(make_project, sources, models=(WIDGET,), mode=AnalysisMode.TIERED):
    server_root, client_root, files = make_project(sources)
    analyzer = UsageAnalyzer(
        models, files,
        client_roots=[client_root],
        server_root=server_root,
        mode=mode,
    )
    return analyzer, analyzer.analyze_all()


class TestClassify:
    """The five-tier decision rule."""

    @pytest.mark.parametrize('tags, confidence, expected', [
        ({UsageType.DATABASE_OPERATION}, 40, RiskLevel.SAFE),
        ({UsageType.API_ENDPOINT, UsageType.WEAK_INDICATOR}, 37, RiskLevel.SAFE),
        ({UsageType.TYPE_DEFINITION}, 30, RiskLevel.PROBABLY_SAFE),
        ({UsageType.TYPE_DEFINITION, UsageType.WEAK_INDICATOR}, 27, RiskLevel.SUSPICIOUS),
        ({UsageType.SCHEMA_REFERENCE}, 20, RiskLevel.SUSPICIOUS),
        ({UsageType.SCHEMA_REFERENCE}, 19, RiskLevel.LIKELY_UNUSED),
        ({UsageType.WEAK_INDICATOR}, 2, RiskLevel.LIKELY_UNUSED),
        (set(), 0, RiskLevel.DEFINITELY_UNUSED),
    ])
    def test_decision_rule(self, tags, confidence, expected):
        """Tags and confidence map onto the five risk levels."""
        assert classify(tags, confidence) is expected

    def test_real_usage_gate(self):
        """Medium tiers need one pattern to hit twice, weak tiers never count."""
        one = UsageSignal(UsageType.BUSINESS_LOGIC, match_count=2, confidence=20, max_pattern_matches=1)
        two = UsageSignal(UsageType.BUSINESS_LOGIC, match_count=2, confidence=20, max_pattern_matches=2)
        weak = UsageSignal(UsageType.WEAK_INDICATOR, match_count=9, confidence=2)
        strong = UsageSignal(UsageType.API_ENDPOINT, match_count=1, confidence=35)

        assert not is_real_usage([one]), "Two occurrences spread over patterns do not pass"
        assert is_real_usage([two])
        assert not is_real_usage([weak]), "Weak signals never prove real usage"
        assert is_real_usage([weak, strong])


class TestTieredClassification:
    """End-to-end verdicts in the default tiered mode."""

    def test_database_call_is_safe(self, make_project):
        """A single ORM call makes a model SAFE."""
        _, usage = analyze(make_project, {
            'src/services/widgets.ts': 'export const all = () => prisma.widget.findMany();\n',
        })
        widget = usage['Widget']

        assert widget.risk_level is RiskLevel.SAFE
        assert UsageType.DATABASE_OPERATION in widget.usage_types
        assert widget.is_really_used
        assert widget.server_files == 1 and widget.client_files == 0

    def test_comment_only_mention_is_unused(self, make_project):
        """Names that only appear in comments are ignored."""
        _, usage = analyze(make_project, {
            'src/lib/notes.ts': '// TODO: drop Widget\n/* Widget was moved */\nexport const x = 1;\n',
        })
        widget = usage['Widget']

        assert widget.risk_level is RiskLevel.DEFINITELY_UNUSED
        assert widget.total_files == 0
        assert widget.total_confidence == 0
        assert not widget.is_really_used

    def test_import_only_is_likely_unused(self, make_project):
        """An import alone is a weak indicator."""
        _, usage = analyze(make_project, {
            'src/lib/index.ts': "import { Widget } from './types';\n",
        })
        widget = usage['Widget']

        assert widget.risk_level is RiskLevel.LIKELY_UNUSED
        assert widget.usage_types == [UsageType.WEAK_INDICATOR]
        assert widget.total_confidence == 2, "Weak tier adds its weight once per file"

    def test_client_medium_tiers_are_probably_safe(self, make_project):
        """Type and client tiers together pass the confidence threshold."""
        _, usage = analyze(make_project, {
            'client/src/components/Card.tsx': 'interface WidgetProps {\n  title: string;\n}\n',
        })
        widget = usage['Widget']

        # TYPE_DEFINITION 25 + CLIENT_OPERATION 20
        assert widget.total_confidence == 45
        assert widget.risk_level is RiskLevel.PROBABLY_SAFE
        assert widget.client_files == 1 and widget.server_files == 0
        assert widget.is_really_used

    def test_medium_below_threshold_is_suspicious(self, make_project):
        """One medium tier below the threshold is SUSPICIOUS."""
        _, usage = analyze(make_project, {
            'src/utils/render.ts': 'export function render(w: Widget) {\n  return w;\n}\n',
        })
        widget = usage['Widget']

        # TYPE_DEFINITION 25 + WEAK_INDICATOR 2
        assert widget.total_confidence == 27
        assert widget.usage_types == [UsageType.TYPE_DEFINITION, UsageType.WEAK_INDICATOR]
        assert widget.risk_level is RiskLevel.SUSPICIOUS
        assert not widget.is_really_used

    def test_single_migration_is_likely_unused(self, make_project):
        """One migration mention stays below the weak threshold."""
        _, usage = analyze(make_project, {
            'prisma/migrations/001/migration.sql': 'CREATE TABLE "Widget" (\n  "id" TEXT NOT NULL\n);\n',
        })
        widget = usage['Widget']

        assert widget.usage_types == [UsageType.SCHEMA_REFERENCE]
        assert widget.total_confidence == 15
        assert widget.risk_level is RiskLevel.LIKELY_UNUSED

    def test_schema_references_across_files_become_suspicious(self, make_project):
        """Schema references add up across files."""
        _, usage = analyze(make_project, {
            'prisma/migrations/001/migration.sql': 'CREATE TABLE "Widget" (\n  "id" TEXT NOT NULL\n);\n',
            'prisma/migrations/002/migration.sql': 'ALTER TABLE "Widget" ADD COLUMN "title" TEXT;\n',
        })
        widget = usage['Widget']

        assert widget.total_confidence == 30
        assert widget.total_files == 2
        assert widget.risk_level is RiskLevel.SUSPICIOUS

    def test_weight_added_once_per_tier(self, make_project):
        """Repeated matches do not raise a tier's confidence."""
        analyzer, usage = analyze(make_project, {
            'src/services/widgets.ts': (
                'prisma.widget.findMany();\n'
                'prisma.widget.findMany();\n'
                'prisma.widget.count();\n'
            ),
        })
        analysis = usage['Widget'].file_analyses[0]
        signal = analysis.signals[0]

        assert signal.usage_type is UsageType.DATABASE_OPERATION
        assert signal.match_count == 3
        assert signal.confidence == 40, "Confidence is the flat tier weight"
        assert analysis.confidence == 40

    def test_database_tier_ignored_in_client_files(self, make_project):
        """ORM calls in client code are not database evidence."""
        _, usage = analyze(make_project, {
            'client/src/api.ts': 'prisma.widget.findMany();\n',
        })
        widget = usage['Widget']

        assert UsageType.DATABASE_OPERATION not in widget.usage_types
        assert widget.risk_level is RiskLevel.DEFINITELY_UNUSED

    def test_route_literal_hidden_in_tiered_mode(self, make_project):
        """String literals are blanked before tiered matching."""
        _, usage = analyze(make_project, {
            'src/routes/widgets.ts': "router.get('/api/widgets', handler);\n",
        })
        assert usage['Widget'].risk_level is RiskLevel.DEFINITELY_UNUSED

    def test_display_paths_relative_to_area_root(self, make_project):
        """Paths are reported relative to their server or client root."""
        _, usage = analyze(make_project, {
            'src/services/widgets.ts': 'prisma.widget.count();\n',
            'client/src/Card.tsx': 'interface WidgetProps {\n}\n',
        })
        paths = {a.display_path for a in usage['Widget'].file_analyses}

        assert paths == {'src/services/widgets.ts', 'src/Card.tsx'}

    def test_top_files_by_confidence(self, make_project):
        """top_files() orders files by confidence."""
        _, usage = analyze(make_project, {
            'src/a.ts': "import { Widget } from './types';\n",
            'src/b.ts': 'prisma.widget.count();\n',
        })
        top = usage['Widget'].top_files(1)

        assert [a.display_path for a in top] == ['src/b.ts']


class TestStrictMode:
    """Binary real-usage verdicts."""

    def test_single_medium_match_is_not_real_usage(self, make_project):
        """One medium match only mentions the model."""
        _, usage = analyze(make_project, {
            'src/lib/counts.ts': 'const widgetCount = 1;\n',
        }, mode=AnalysisMode.STRICT)
        widget = usage['Widget']

        assert widget.real_usage_files == 0
        assert widget.risk_level is RiskLevel.SUSPICIOUS
        assert not widget.is_really_used

    def test_two_medium_matches_are_real_usage(self, make_project):
        """Two hits of one medium pattern prove real usage."""
        _, usage = analyze(make_project, {
            'src/lib/counts.ts': 'const widgetCount = 1;\nconst widgetTotal = 2;\n',
        }, mode=AnalysisMode.STRICT)
        widget = usage['Widget']

        assert widget.real_usage_files == 1
        assert widget.risk_level is RiskLevel.SAFE
        assert widget.is_really_used

    def test_single_declaration_is_not_real_usage(self, make_project):
        """A declaration seen by both case variants is still one match."""
        _, usage = analyze(make_project, {
            'src/lib/widget.ts': 'const Widget = 1;\n',
        }, mode=AnalysisMode.STRICT)
        widget = usage['Widget']
        business = next(s for s in widget.file_analyses[0].signals
                        if s.usage_type is UsageType.BUSINESS_LOGIC)

        assert business.match_count == 1, "Case variants of one declaration count once"
        assert widget.real_usage_files == 0
        assert widget.risk_level is RiskLevel.SUSPICIOUS
        assert not widget.is_really_used

    def test_one_service_call_is_not_real_usage(self, make_project):
        """Overlapping business patterns on one call do not pass the gate."""
        _, usage = analyze(make_project, {
            'src/services/inventory.ts': 'export const one = (id) => inventoryService.getWidget(id);\n',
        }, mode=AnalysisMode.STRICT)
        widget = usage['Widget']

        assert widget.real_usage_files == 0
        assert widget.risk_level is RiskLevel.SUSPICIOUS

    def test_min_matches_gate_does_not_change_confidence(self, make_project):
        """The real-usage gate leaves tiered confidence alone."""
        _, tiered = analyze(make_project, {
            'src/lib/counts.ts': 'const widgetCount = 1;\nconst widgetTotal = 2;\n',
        })
        widget = tiered['Widget']

        assert widget.total_confidence == 20
        assert widget.risk_level is RiskLevel.SUSPICIOUS
        assert widget.real_usage_files == 1

    def test_route_literal_counts_in_strict_mode(self, make_project):
        """Strict mode keeps string literals, so routes count."""
        _, usage = analyze(make_project, {
            'src/routes/widgets.ts': "router.get('/api/widgets', handler);\n",
        }, mode=AnalysisMode.STRICT)
        widget = usage['Widget']

        assert UsageType.API_ENDPOINT in widget.usage_types
        assert widget.risk_level is RiskLevel.SAFE

    def test_no_mentions_is_definitely_unused(self, make_project):
        """A model nobody mentions is DEFINITELY_UNUSED."""
        _, usage = analyze(make_project, {
            'src/lib/empty.ts': 'export {};\n',
        }, mode=AnalysisMode.STRICT)

        assert usage['Widget'].risk_level is RiskLevel.DEFINITELY_UNUSED

    def test_mode_accepts_string(self, make_project):
        """The mode can be given by its string value."""
        server_root, client_root, files = make_project({'src/a.ts': 'x'})
        analyzer = UsageAnalyzer([WIDGET], files, mode='strict')
        assert analyzer.mode is AnalysisMode.STRICT


class TestAnalyzerContract:
    """Completeness, inputs and repeatability."""

    def test_one_entry_per_model_in_schema_order(self, make_project):
        """Results keep schema order and cover every model."""
        models = [Model(name='Zeta'), Model(name='Alpha'), Model(name='Widget')]
        _, usage = analyze(make_project, {'src/a.ts': 'prisma.widget.count();\n'}, models=models)

        assert list(usage) == ['Zeta', 'Alpha', 'Widget']
        assert usage['Zeta'].risk_level is RiskLevel.DEFINITELY_UNUSED

    def test_duplicate_model_names_rejected(self):
        """Two models with one name are rejected."""
        with pytest.raises(ValueError, match='Duplicate model name'):
            UsageAnalyzer([Model(name='Widget'), {'name': 'Widget'}], [])

    def test_accepts_parser_dicts(self, make_project):
        """Parser dictionaries are accepted as model input."""
        server_root, client_root, files = make_project({'src/a.ts': 'prisma.orderItem.count();\n'})
        analyzer = UsageAnalyzer(
            [{'name': 'OrderItem', 'relationships': [{'field': 'order', 'model': 'Order', 'isArray': False}]},
             {'name': 'Order'}],
            files,
        )
        usage = analyzer.analyze_all()

        assert analyzer.models['OrderItem'].relationships == (Relationship('order', 'Order', False),)
        assert usage['OrderItem'].risk_level is RiskLevel.SAFE

    def test_unknown_model_raises_key_error(self):
        """Analyzing an undeclared model raises KeyError."""
        analyzer = UsageAnalyzer([WIDGET], [])
        with pytest.raises(KeyError):
            analyzer.analyze_model('Gadget')

    def test_no_files_means_everything_unused(self):
        """Without files every model is unused."""
        usage = UsageAnalyzer([WIDGET, Model(name='Order')], []).analyze_all()
        assert {u.risk_level for u in usage.values()} == {RiskLevel.DEFINITELY_UNUSED}

    def test_vanished_file_is_treated_as_empty(self, tmp_path, capsys):
        """A file deleted after discovery warns and counts as empty."""
        usage = UsageAnalyzer([WIDGET], [tmp_path / 'deleted.ts']).analyze_all()

        assert usage['Widget'].risk_level is RiskLevel.DEFINITELY_UNUSED
        assert 'deleted.ts' in capsys.readouterr().err

    def test_repeat_runs_are_identical(self, make_project):
        """Repeated runs give identical output and reuse cached reads."""
        server_root, client_root, files = make_project({
            'src/a.ts': 'prisma.widget.count();\n',
            'src/b.ts': "import { Widget } from './types';\n",
            'client/src/c.tsx': 'interface WidgetProps {}\n',
        })
        cache = SourceCache()
        analyzer = UsageAnalyzer([WIDGET, Model(name='Order')], files,
                                 client_roots=[client_root], server_root=server_root, cache=cache)

        first = json.dumps({n: u.to_dict() for n, u in analyzer.analyze_all().items()})
        second = json.dumps({n: u.to_dict() for n, u in analyzer.analyze_all().items()})

        assert first == second
        assert cache.reads == len(files), "Every file is read exactly once across models and runs"

    def test_progress_callback(self, make_project):
        """The progress callback sees each model once, in order."""
        server_root, client_root, files = make_project({'src/a.ts': 'x'})
        seen = []
        UsageAnalyzer([WIDGET, Model(name='Order')], files).analyze_all(progress=lambda u: seen.append(u.name))
        assert seen == ['Widget', 'Order']


class TestRelationshipAudit:
    """Analyzer-driven relationship findings."""

    def test_unused_target_of_live_model_is_dangerous(self, make_project):
        """An unused model referenced by a used one is dangerous."""
        models = [
            Model(name='Order'),
            Model(name='OrderItem', relationships=(Relationship('order', 'Order'),)),
        ]
        analyzer, usage = analyze(make_project, {
            'src/routes/items.ts': 'const rows = await prisma.orderItem.findMany();\n',
        }, models=models)
        findings = analyzer.audit_relationships()

        assert usage['Order'].risk_level is RiskLevel.DEFINITELY_UNUSED
        assert usage['OrderItem'].risk_level is RiskLevel.SAFE
        assert list(findings) == ['Order']
        assert findings['Order'].referenced_by == ['OrderItem']
        assert findings['Order'].is_dangerous

    def test_audit_runs_analysis_when_needed(self):
        """Auditing before analysis runs the analysis first."""
        analyzer = UsageAnalyzer([WIDGET], [])
        findings = analyzer.audit_relationships()
        assert 'Widget' in findings
        assert not findings['Widget'].is_dangerous


class TestSampleApp:
    """Whole-pipeline verdicts on the checked-in sample app."""

    EXPECTED_TIERED = {
        'User': RiskLevel.SAFE,
        'Order': RiskLevel.DEFINITELY_UNUSED,
        'OrderItem': RiskLevel.SAFE,
        'Widget': RiskLevel.PROBABLY_SAFE,
        'Coupon': RiskLevel.SUSPICIOUS,
        'AuditLog': RiskLevel.LIKELY_UNUSED,
        'LegacyToken': RiskLevel.DEFINITELY_UNUSED,
    }

    EXPECTED_STRICT = {
        'User': RiskLevel.SAFE,
        'Order': RiskLevel.SAFE,  # '/order-items' route literal
        'OrderItem': RiskLevel.SAFE,
        'Widget': RiskLevel.SUSPICIOUS,  # WidgetCard is declared once
        'Coupon': RiskLevel.SUSPICIOUS,
        'AuditLog': RiskLevel.SUSPICIOUS,
        'LegacyToken': RiskLevel.DEFINITELY_UNUSED,
    }

    def _analyzer(self, sample_app, mode):
        server_root = sample_app / 'server'
        walker = FileWalker(server_root, sample_app / 'client')
        models = SchemaParser(server_root / 'prisma' / 'schema.prisma').parse()
        return UsageAnalyzer(models, walker.discover(), client_roots=walker.client_roots,
                             server_root=server_root, mode=mode)

    def test_tiered_verdicts(self, sample_app):
        """Sample app verdicts in tiered mode."""
        usage = self._analyzer(sample_app, AnalysisMode.TIERED).analyze_all()
        actual = {name: u.risk_level for name, u in usage.items()}
        assert actual == self.EXPECTED_TIERED, f"Unexpected verdicts: {actual}"

    def test_strict_verdicts(self, sample_app):
        """Sample app verdicts in strict mode."""
        usage = self._analyzer(sample_app, AnalysisMode.STRICT).analyze_all()
        actual = {name: u.risk_level for name, u in usage.items()}
        assert actual == self.EXPECTED_STRICT, f"Unexpected verdicts: {actual}"

    def test_vendored_code_is_not_evidence(self, sample_app):
        """node_modules is never scanned."""
        usage = self._analyzer(sample_app, AnalysisMode.TIERED).analyze_all()
        assert usage['LegacyToken'].total_files == 0, "node_modules must never be scanned"

    def test_dangerous_relationship_flagged(self, sample_app):
        """Order is flagged as referenced by a used model."""
        analyzer = self._analyzer(sample_app, AnalysisMode.TIERED)
        findings = analyzer.audit_relationships()

        assert findings['Order'].is_dangerous
        assert findings['Order'].safe_referrers == ['OrderItem']
        assert not findings['Coupon'].referenced_by
