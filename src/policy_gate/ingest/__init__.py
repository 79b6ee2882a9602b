from .base import ReportParser
from .checkstyle import CheckstyleXmlParser
from .coverage import CoberturaParser, JacocoParser
from .errors import IngestError, IngestErrorDetail, IngestErrorKind, ReportFormatError
from .pmd import PmdParser
from .registry import DEFAULT_FORMATS, ParserRegistry, default_registry
from .runner import (
    Deadline,
    FailedSource,
    IngestOutcome,
    ReportSource,
    ingest,
    ingest_all,
    ingest_source,
)
from .sarif import SarifParser
from .secrets import DetectSecretsParser, GitleaksParser
from .spotbugs import SpotBugsParser

__all__ = [
    "DEFAULT_FORMATS",
    "CheckstyleXmlParser",
    "CoberturaParser",
    "Deadline",
    "DetectSecretsParser",
    "FailedSource",
    "GitleaksParser",
    "IngestError",
    "IngestErrorDetail",
    "IngestErrorKind",
    "IngestOutcome",
    "JacocoParser",
    "ParserRegistry",
    "PmdParser",
    "ReportFormatError",
    "ReportParser",
    "ReportSource",
    "SarifParser",
    "SpotBugsParser",
    "default_registry",
    "ingest",
    "ingest_all",
    "ingest_source",
]
