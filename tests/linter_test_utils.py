from collections.abc import Mapping
from typing import Any

from flakiness_linter.domain.config import AnalysisConfig, ConfigurationLoader, ConfigurationResolver, ResolvedRule
from flakiness_linter.domain.context import ContextInspector
from flakiness_linter.domain.detectors import BaseDetector
from flakiness_linter.domain.dispatcher import FileDispatcher
from flakiness_linter.domain.entities import FileAnalysisResult, Finding
from flakiness_linter.domain.fixes import EditApplier
from flakiness_linter.domain.registry import RuleRegistry
from flakiness_linter.domain.source_file import SourceFile
from flakiness_linter.infrastructure.gateways.tree_sitter_gateway import TreeSitterGateway
from flakiness_linter.use_cases.analyze_file import AnalyzeFileUseCase

GATEWAY = TreeSitterGateway()
TEST_FILE = "example.test.js"


def parse_source(code: str, filename: str = TEST_FILE) -> SourceFile:
    source = code.encode("utf-8")
    root = GATEWAY.parse(source, filename)
    return SourceFile(filename, source, root, GATEWAY.dialect_for(filename))


def inspector_for(code: str, filename: str = TEST_FILE) -> ContextInspector:
    return ContextInspector(parse_source(code, filename))


def find_nodes(source: SourceFile, kind: str, text: str | None = None) -> list:
    """Nodes of `kind`, optionally only those whose source text equals `text`."""
    from flakiness_linter.domain import syntax

    return [
        n for n in syntax.walk(source.root)
        if n.type == kind and (text is None or syntax.text(n) == text)
    ]


def single_rule_config(detector_cls: type[BaseDetector], options: Mapping[str, Any] | None = None) -> AnalysisConfig:
    reg = detector_cls.registration()
    resolved = ConfigurationResolver.resolve(reg.detector_id, options, detector_cls.option_schema)
    return AnalysisConfig(rules={reg.detector_id: ResolvedRule(reg.default_severity, resolved)})


def run_detector(detector_cls: type[BaseDetector], code: str, filename: str = TEST_FILE,
                 **options: Any) -> list[Finding]:
    """Findings of a single detector over `code`, as the dispatcher reports them."""
    source = parse_source(code, filename)
    registry = RuleRegistry((detector_cls,))
    return FileDispatcher(registry, single_rule_config(detector_cls, options), source).run()


def message_ids(findings: list[Finding]) -> list[str]:
    return [f.message_id for f in findings]


def apply_fix(code: str, finding: Finding) -> str:
    assert finding.fix, f"{finding.detector_id}/{finding.message_id} carries no fix"
    return EditApplier.apply(code.encode("utf-8"), finding.fix).decode("utf-8")


def engine(config_dict: Mapping[str, Any] | None = None) -> AnalyzeFileUseCase:
    registry = RuleRegistry.get_instance()
    loader = ConfigurationLoader(config_dict or {}, registry.catalog())
    return AnalyzeFileUseCase(GATEWAY, registry, AnalysisConfig.from_loader(loader))


def run_engine(code: str, filename: str = TEST_FILE,
               config_dict: Mapping[str, Any] | None = None) -> FileAnalysisResult:
    """Every catalog detector over `code`, with conflict arbitration and round-trip checks."""
    return engine(config_dict).analyze_text(filename, code)
