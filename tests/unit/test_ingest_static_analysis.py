from __future__ import annotations

import json

import pytest

from policy_gate.findings import Severity, ToolKind, UnitKind
from policy_gate.ingest import (
    CheckstyleXmlParser,
    PmdParser,
    ReportFormatError,
    SarifParser,
    SpotBugsParser,
)
from policy_gate.ingest.pmd import pmd_severity
from policy_gate.ingest.spotbugs import spotbugs_severity

pytestmark = pytest.mark.unit

_PMD = b"""<?xml version="1.0" encoding="UTF-8"?>
<pmd xmlns="http://pmd.sourceforge.net/report/2.0.0" version="7.0.0">
  <file name="src/main/java/com/acme/Payment.java">
    <violation beginline="12" endline="40" rule="ExcessiveMethodLength" ruleset="Design" priority="3">
      Avoid really long methods (29 lines).
    </violation>
    <violation beginline="5" endline="5" rule="AvoidUsingHardCodedIP" ruleset="Best Practices" priority="1">
      Do not hard code the IP address
    </violation>
  </file>
  <suppressedviolation filename="src/main/java/com/acme/Legacy.java" beginline="7" rule="GodClass"
      priority="2" msg="Possible God Class" suppressiontype="annotation" usermsg="scheduled for removal"/>
  <error filename="src/main/java/com/acme/Broken.java" msg="ParseException: Encountered"/>
</pmd>
"""

_CHECKSTYLE = b"""<?xml version="1.0" encoding="UTF-8"?>
<checkstyle version="4.3">
  <file name="src/main/kotlin/Payment.kt">
    <error line="3" column="1" severity="error" message="The function charge is too long (61). The maximum length is 60."
        source="detekt.LongMethod"/>
    <error line="9" severity="warning" message="Magic number" source="detekt.MagicNumber"/>
    <error line="11" severity="info" message="Todo found" source="detekt.ForbiddenComment"/>
  </file>
  <file name="src/main/kotlin/Empty.kt"/>
</checkstyle>
"""

_SPOTBUGS = b"""<?xml version="1.0" encoding="UTF-8"?>
<BugCollection version="4.8.3">
  <BugInstance type="SQL_INJECTION_JDBC" priority="1" rank="3" category="SECURITY">
    <ShortMessage>SQL injection</ShortMessage>
    <LongMessage>Possible SQL injection in com.acme.Repo.find</LongMessage>
    <Class classname="com.acme.Repo">
      <SourceLine classname="com.acme.Repo" sourcefile="Repo.java" sourcepath="com/acme/Repo.java"/>
    </Class>
    <SourceLine classname="com.acme.Repo" start="44" end="44" sourcefile="Repo.java"
        sourcepath="com/acme/Repo.java" primary="true"/>
  </BugInstance>
  <BugInstance type="DM_DEFAULT_ENCODING" priority="2" category="I18N">
    <ShortMessage>Reliance on default encoding</ShortMessage>
    <SourceLine start="8" sourcepath="com/acme/Io.java"/>
  </BugInstance>
</BugCollection>
"""


def _sarif(results: list[dict[str, object]], *, rules: list[dict[str, object]] | None = None) -> bytes:
    document = {
        "version": "2.1.0",
        "runs": [
            {
                "tool": {"driver": {"name": "detekt", "rules": rules or []}},
                "results": results,
            }
        ],
    }
    return json.dumps(document).encode("utf-8")


def test_pmd_maps_priorities_and_reads_suppressions() -> None:
    report = PmdParser().parse(_PMD, source_path="pmd.xml")

    assert report.tool is ToolKind.PMD
    assert [(finding.rule_id, finding.severity, finding.line) for finding in report.raw_findings] == [
        ("ExcessiveMethodLength", Severity.MEDIUM, 12),
        ("AvoidUsingHardCodedIP", Severity.CRITICAL, 5),
        ("GodClass", Severity.HIGH, 7),
        ("PMD.ProcessingError", Severity.MEDIUM, 0),
    ]
    suppressed = report.raw_findings[2]
    assert suppressed.suppressed
    assert suppressed.suppression_justification == "scheduled for removal"
    assert suppressed.is_documented_suppression
    assert report.raw_findings[0].message == "Avoid really long methods (29 lines)."

    (size,) = report.unit_sizes
    assert size.kind is UnitKind.METHOD
    assert size.lines == 29
    assert size.name == "Payment.java:12"


@pytest.mark.parametrize(
    ("priority", "expected"),
    [(1, Severity.CRITICAL), (2, Severity.HIGH), (3, Severity.MEDIUM), (4, Severity.LOW), (5, Severity.LOW)],
)
def test_pmd_severity_mapping(priority: int, expected: Severity) -> None:
    assert pmd_severity(priority) is expected


def test_checkstyle_parser_serves_detekt_reports() -> None:
    report = CheckstyleXmlParser(tool=ToolKind.DETEKT).parse(_CHECKSTYLE, source_path="detekt.xml")

    assert report.tool is ToolKind.DETEKT
    assert [finding.severity for finding in report.raw_findings] == [
        Severity.HIGH,
        Severity.MEDIUM,
        Severity.LOW,
    ]
    assert report.raw_findings[0].file == "src/main/kotlin/Payment.kt"
    (size,) = report.unit_sizes
    assert (size.kind, size.lines) == (UnitKind.METHOD, 61)


def test_checkstyle_rejects_other_roots() -> None:
    with pytest.raises(ReportFormatError, match="expected <checkstyle>"):
        CheckstyleXmlParser().parse(_PMD, source_path="pmd.xml")


def test_spotbugs_uses_rank_then_priority() -> None:
    report = SpotBugsParser().parse(_SPOTBUGS, source_path="spotbugs.xml")

    first, second = report.raw_findings
    assert (first.rule_id, first.severity, first.file, first.line) == (
        "SQL_INJECTION_JDBC",
        Severity.CRITICAL,
        "com/acme/Repo.java",
        44,
    )
    assert first.message == "Possible SQL injection in com.acme.Repo.find"
    assert (second.severity, second.file, second.line) == (Severity.MEDIUM, "com/acme/Io.java", 8)


@pytest.mark.parametrize(
    ("rank", "priority", "expected"),
    [
        (1, 3, Severity.CRITICAL),
        (4, 3, Severity.CRITICAL),
        (5, 1, Severity.HIGH),
        (9, 1, Severity.HIGH),
        (10, 1, Severity.MEDIUM),
        (14, 1, Severity.MEDIUM),
        (15, 1, Severity.LOW),
        (None, 1, Severity.HIGH),
        (None, 2, Severity.MEDIUM),
        (None, 3, Severity.LOW),
    ],
)
def test_spotbugs_severity_mapping(rank: int | None, priority: int, expected: Severity) -> None:
    assert spotbugs_severity(rank=rank, priority=priority) is expected


def test_spotbugs_requires_bug_type() -> None:
    with pytest.raises(ReportFormatError, match="missing attribute 'type'"):
        SpotBugsParser().parse(b"<BugCollection><BugInstance priority='1'/></BugCollection>", source_path="s.xml")


def test_sarif_levels_locations_and_suppressions() -> None:
    payload = _sarif(
        [
            {
                "ruleId": "detekt.LargeClass",
                "message": {"text": "Class Payment is too large (612 lines)."},
                "locations": [
                    {
                        "physicalLocation": {
                            "artifactLocation": {"uri": "src/main/kotlin/Payment.kt"},
                            "region": {"startLine": 1},
                        }
                    }
                ],
            },
            {
                "ruleId": "detekt.TooGenericExceptionCaught",
                "level": "error",
                "message": {"text": "Caught Exception"},
                "suppressions": [{"kind": "inSource", "justification": "boundary catch"}],
            },
            {"ruleId": "detekt.MaxLineLength", "level": "note", "message": {"text": "long"}},
        ],
        rules=[{"id": "detekt.LargeClass", "defaultConfiguration": {"level": "warning"}}],
    )

    report = SarifParser().parse(payload, source_path="detekt.sarif")

    large, caught, note = report.raw_findings
    assert (large.severity, large.file, large.line) == (Severity.MEDIUM, "src/main/kotlin/Payment.kt", 1)
    assert caught.severity is Severity.HIGH
    assert caught.is_documented_suppression
    assert note.severity is Severity.LOW
    (size,) = report.unit_sizes
    assert (size.kind, size.lines) == (UnitKind.CLASS, 612)


def test_sarif_rejects_documents_without_runs() -> None:
    with pytest.raises(ReportFormatError, match="missing 'runs'"):
        SarifParser().parse(b'{"version": "2.1.0"}', source_path="x.sarif")
    with pytest.raises(ReportFormatError, match="missing 'ruleId'"):
        SarifParser().parse(_sarif([{"message": {"text": "x"}}]), source_path="x.sarif")
