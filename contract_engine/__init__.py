"""Contract template structure recovery and DOCX regeneration."""

from contract_engine.config import (
    ClassifierConfig,
    EngineConfig,
    ExtractorConfig,
    GenerationOptions,
    PageMargins,
    RenderConfig,
)
from contract_engine.detector import SourceDescriptor, SourceDetector
from contract_engine.emitter import DocumentEmitter, EmissionResult
from contract_engine.exceptions import (
    ContractEngineError,
    CorruptInputError,
    EmissionError,
    EmptyContentError,
    UnsupportedFormatError,
)
from contract_engine.fixed_layout import FixedLayoutAdapter
from contract_engine.flowed import FlowedDocumentAdapter
from contract_engine.handler import ContractEngine
from contract_engine.models import (
    BlockType,
    ContentBlock,
    EngineWarning,
    GenerationResult,
    LogicalVariable,
    ParsedDocument,
    SourceKind,
    TemplateAnalysis,
    TemplateRecord,
    VariablePlaceholder,
    VariableType,
    VariableValue,
    WarningCode,
)
from contract_engine.parser import generate_contract, parse_template
from contract_engine.store import InMemoryTemplateStore, TemplateStore

__version__ = "0.1.0"

__all__ = [
    # High-level API
    "parse_template",
    "generate_contract",
    # Core classes
    "ContractEngine",
    "SourceDetector",
    "FlowedDocumentAdapter",
    "FixedLayoutAdapter",
    "DocumentEmitter",
    "InMemoryTemplateStore",
    "TemplateStore",
    # Data models
    "BlockType",
    "ContentBlock",
    "EmissionResult",
    "EngineWarning",
    "GenerationResult",
    "LogicalVariable",
    "ParsedDocument",
    "SourceDescriptor",
    "SourceKind",
    "TemplateAnalysis",
    "TemplateRecord",
    "VariablePlaceholder",
    "VariableType",
    "VariableValue",
    "WarningCode",
    # Configuration
    "ClassifierConfig",
    "EngineConfig",
    "ExtractorConfig",
    "GenerationOptions",
    "PageMargins",
    "RenderConfig",
    # Exceptions
    "ContractEngineError",
    "UnsupportedFormatError",
    "CorruptInputError",
    "EmptyContentError",
    "EmissionError",
]
