"""
Pattern Registry — Versioned Lexical Rules

The registry defines:
  1. The six operator classes (immutable taxonomy)
  2. What a pattern definition is (rule + capture names + metadata rule)
  3. The v0.1 rule table, constructed once at import

Registries are pure data. They are never mutated; filtering one yields
a new registry, which is how rule sensitivity is tested: remove a rule,
re-run, and observe that the output changed. Authority lives in the
rules, not in the detector.

Every rule is compiled with re.ASCII so that word boundaries and digit
classes do not depend on Unicode tables.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, Optional

from ddrp.errors import PatternDefinitionError

REGISTRY_VERSION = "0.1.0"


# ============================================================
# OPERATOR TAXONOMY
# ============================================================

class OperatorClass(str, Enum):
    REQ = "REQ"          # Requirement / deontic
    DEF = "DEF"          # Definition / binding
    CAUSE = "CAUSE"      # Causality / justification
    SCOPE = "SCOPE"      # Applicability / context gating
    UNIV = "UNIV"        # Universals / quantifiers
    ANCHOR = "ANCHOR"    # External reference / authority


MetadataRule = Callable[["re.Match[str]"], dict[str, Any]]


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class PatternDefinition:
    """
    A single lexical rule.

    The rule is a regular expression whose capture groups map, by
    position, onto capture_names. The two must agree in length; a
    mismatch is rejected at construction, not at detection time.
    """
    id: str
    operator_class: OperatorClass
    rule: str
    capture_names: tuple[str, ...]
    flags: int = re.IGNORECASE
    metadata_rule: Optional[MetadataRule] = None
    compiled: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.id:
            raise PatternDefinitionError("<unnamed>", "pattern id is empty")
        if not isinstance(self.operator_class, OperatorClass):
            raise PatternDefinitionError(
                self.id, f"unknown operator class {self.operator_class!r}"
            )
        try:
            compiled = re.compile(self.rule, self.flags | re.ASCII)
        except re.error as exc:
            raise PatternDefinitionError(self.id, f"rule does not compile: {exc}") from exc
        if compiled.groups != len(self.capture_names):
            raise PatternDefinitionError(
                self.id,
                f"rule has {compiled.groups} capture group(s) but "
                f"{len(self.capture_names)} capture name(s)",
            )
        object.__setattr__(self, "capture_names", tuple(self.capture_names))
        object.__setattr__(self, "compiled", compiled)


@dataclass(frozen=True)
class PatternRegistry:
    """An immutable, versioned, ordered collection of pattern definitions."""
    version: str
    patterns: tuple[PatternDefinition, ...]

    def __post_init__(self):
        object.__setattr__(self, "patterns", tuple(self.patterns))
        seen: set[str] = set()
        for p in self.patterns:
            if p.id in seen:
                raise PatternDefinitionError(p.id, "duplicate pattern id in registry")
            seen.add(p.id)

    def __iter__(self) -> Iterator[PatternDefinition]:
        return iter(self.patterns)

    def __len__(self) -> int:
        return len(self.patterns)

    def __contains__(self, pattern_id: object) -> bool:
        return any(p.id == pattern_id for p in self.patterns)

    def get(self, pattern_id: str) -> Optional[PatternDefinition]:
        for p in self.patterns:
            if p.id == pattern_id:
                return p
        return None

    def filter(
        self,
        predicate: Callable[[PatternDefinition], bool],
        version: Optional[str] = None,
    ) -> PatternRegistry:
        """Return a new registry holding only patterns that satisfy predicate."""
        return PatternRegistry(
            version=version or f"{self.version}-filtered",
            patterns=tuple(p for p in self.patterns if predicate(p)),
        )

    def without(self, *pattern_ids: str, version: Optional[str] = None) -> PatternRegistry:
        """Return a new registry with the named patterns removed."""
        excluded = set(pattern_ids)
        return self.filter(
            lambda p: p.id not in excluded,
            version=version or f"{self.version}-modified",
        )

    def stats(self) -> dict[str, int]:
        """Pattern count per operator class, in taxonomy order."""
        counts = {cls.value: 0 for cls in OperatorClass}
        for p in self.patterns:
            counts[p.operator_class.value] += 1
        return counts


# ============================================================
# METADATA RULES
# ============================================================

def _requirement(strength: str, negated: bool) -> MetadataRule:
    def rule(match: "re.Match[str]") -> dict[str, Any]:
        return {"strength": strength, "negated": negated}
    return rule


_HARD = _requirement("hard", False)
_HARD_NEGATED = _requirement("hard", True)
_SOFT = _requirement("soft", False)
_SOFT_NEGATED = _requirement("soft", True)


def _pattern(
    pattern_id: str,
    operator_class: OperatorClass,
    rule: str,
    capture_names: Iterable[str],
    flags: int = re.IGNORECASE,
    metadata_rule: Optional[MetadataRule] = None,
) -> PatternDefinition:
    return PatternDefinition(
        id=pattern_id,
        operator_class=operator_class,
        rule=rule,
        capture_names=tuple(capture_names),
        flags=flags,
        metadata_rule=metadata_rule,
    )


REQ = OperatorClass.REQ
DEF = OperatorClass.DEF
CAUSE = OperatorClass.CAUSE
SCOPE = OperatorClass.SCOPE
UNIV = OperatorClass.UNIV
ANCHOR = OperatorClass.ANCHOR

CASE_SENSITIVE = 0


# ============================================================
# RULE TABLE v0.1
# ============================================================

PATTERNS_V0_1: tuple[PatternDefinition, ...] = (
    # --- REQ: hard requirements ---
    _pattern("REQ_MUST_001", REQ, r"\b(must)\b(?!\s+not)", ["keyword"], metadata_rule=_HARD),
    _pattern("REQ_MUST_NOT_001", REQ, r"\b(must\s+not|mustn't)\b", ["keyword"], metadata_rule=_HARD_NEGATED),
    _pattern("REQ_SHALL_001", REQ, r"\b(shall)\b(?!\s+not)", ["keyword"], metadata_rule=_HARD),
    _pattern("REQ_SHALL_NOT_001", REQ, r"\b(shall\s+not|shan't)\b", ["keyword"], metadata_rule=_HARD_NEGATED),
    _pattern("REQ_REQUIRED_001", REQ, r"\b(required|is\s+required|are\s+required)\b", ["keyword"], metadata_rule=_HARD),
    _pattern("REQ_PROHIBITED_001", REQ, r"\b(prohibited|is\s+prohibited|are\s+prohibited)\b", ["keyword"], metadata_rule=_HARD_NEGATED),
    _pattern("REQ_MAY_NOT_001", REQ, r"\b(may\s+not)\b", ["keyword"], metadata_rule=_HARD_NEGATED),
    # --- REQ: soft requirements ---
    _pattern("REQ_SHOULD_001", REQ, r"\b(should)\b(?!\s+not)", ["keyword"], metadata_rule=_SOFT),
    _pattern("REQ_SHOULD_NOT_001", REQ, r"\b(should\s+not|shouldn't)\b", ["keyword"], metadata_rule=_SOFT_NEGATED),
    _pattern("REQ_RECOMMENDED_001", REQ, r"\b(recommended|is\s+recommended|are\s+recommended)\b", ["keyword"], metadata_rule=_SOFT),

    # --- DEF ---
    _pattern("DEF_QUOTED_MEANS_001", DEF, r'"([^"]+)"\s+means\b', ["term"]),
    _pattern("DEF_QUOTED_MEANS_002", DEF, r"'([^']+)'\s+means\b", ["term"]),
    _pattern(
        "DEF_TERM_MEANS_001", DEF,
        r"\b([A-Z][a-zA-Z]*(?:\s+[A-Z][a-zA-Z]*)*)\s+means\b",
        ["term"], flags=CASE_SENSITIVE,
    ),
    _pattern("DEF_DEFINED_AS_001", DEF, r"\b([A-Za-z][a-zA-Z\s]*?)\s+(?:is|are)\s+defined\s+as\b", ["term"]),
    _pattern(
        "DEF_FOR_PURPOSES_001", DEF,
        r"\bfor\s+(?:the\s+)?purposes?\s+of\s+this\s+"
        r"(?:document|policy|agreement|section|article)\s*,?\s*"
        r"(?:the\s+term\s+)?[\"']?([^\"',]+?)[\"']?\s+"
        r"(?:means|refers?\s+to|shall\s+mean)\b",
        ["term"],
    ),

    # --- CAUSE ---
    _pattern("CAUSE_BECAUSE_001", CAUSE, r"\b(because)\b", ["keyword"]),
    _pattern("CAUSE_THEREFORE_001", CAUSE, r"\b(therefore)\b", ["keyword"]),
    _pattern("CAUSE_THUS_001", CAUSE, r"\b(thus)\b", ["keyword"]),
    _pattern("CAUSE_HENCE_001", CAUSE, r"\b(hence)\b", ["keyword"]),
    _pattern("CAUSE_AS_RESULT_001", CAUSE, r"\b(as\s+a\s+result)\b", ["keyword"]),
    _pattern("CAUSE_IN_ORDER_TO_001", CAUSE, r"\b(in\s+order\s+to)\b", ["keyword"]),
    _pattern("CAUSE_DUE_TO_001", CAUSE, r"\b(due\s+to)\b", ["keyword"]),
    _pattern("CAUSE_CONSEQUENTLY_001", CAUSE, r"\b(consequently)\b", ["keyword"]),

    # --- SCOPE ---
    _pattern(
        "SCOPE_IN_THIS_DOC_001", SCOPE,
        r"\b(in\s+this\s+(?:document|agreement|policy|section|article|chapter))\b",
        ["scope_phrase"],
    ),
    _pattern("SCOPE_FOR_PURPOSES_001", SCOPE, r"\b(for\s+(?:the\s+)?purposes?\s+of)\b", ["scope_phrase"]),
    _pattern(
        "SCOPE_UNDER_THIS_001", SCOPE,
        r"\b(under\s+this\s+(?:policy|agreement|section|contract))\b",
        ["scope_phrase"],
    ),
    _pattern(
        "SCOPE_FOR_USERS_001", SCOPE,
        r"\b(for\s+(?:all\s+)?(?:users|customers|clients|employees|members|participants))\b",
        ["scope_phrase"],
    ),
    _pattern(
        "SCOPE_FOR_MINORS_001", SCOPE,
        r"\b(for\s+(?:minors|children|individuals\s+under\s+\d+))\b",
        ["scope_phrase"],
    ),
    _pattern(
        "SCOPE_WITHIN_TIME_001", SCOPE,
        r"\b(within\s+\d+\s+(?:days?|weeks?|months?|years?|hours?|minutes?|business\s+days?))\b",
        ["scope_phrase"],
    ),
    _pattern("SCOPE_UNLESS_001", SCOPE, r"\b(unless)\b", ["scope_phrase"]),
    _pattern("SCOPE_EXCEPT_001", SCOPE, r"\b(except\s+(?:for|when|where|as|if)?)\b", ["scope_phrase"]),
    _pattern(
        "SCOPE_IN_JURISDICTION_001", SCOPE,
        r"\b(in\s+(?:the\s+)?(?:EU|US|UK|United\s+States|European\s+Union|California|Delaware"
        r"|[A-Z][a-z]+(?:\s+[A-Z][a-z]+)?))\b",
        ["scope_phrase"], flags=CASE_SENSITIVE,
    ),

    # --- UNIV ---
    _pattern("UNIV_ALL_001", UNIV, r"\b(all)\b", ["quantifier"]),
    _pattern("UNIV_ALWAYS_001", UNIV, r"\b(always)\b", ["quantifier"]),
    _pattern("UNIV_NEVER_001", UNIV, r"\b(never)\b", ["quantifier"]),
    _pattern("UNIV_NONE_001", UNIV, r"\b(none)\b", ["quantifier"]),
    _pattern("UNIV_EVERY_001", UNIV, r"\b(every)\b", ["quantifier"]),
    _pattern("UNIV_ONLY_001", UNIV, r"\b(only)\b", ["quantifier"]),
    _pattern("UNIV_ANY_001", UNIV, r"\b(any)\b", ["quantifier"]),
    _pattern("UNIV_NO_001", UNIV, r"\b(no)\b(?!\s+(?:one|body|thing|where))", ["quantifier"]),

    # --- ANCHOR ---
    _pattern("ANCHOR_ACCORDING_TO_001", ANCHOR, r"\b(according\s+to)\b", ["anchor_phrase"]),
    _pattern("ANCHOR_PER_001", ANCHOR, r"\b(per)\b(?=\s+(?:the|this|[A-Z]))", ["anchor_phrase"]),
    _pattern("ANCHOR_PURSUANT_TO_001", ANCHOR, r"\b(pursuant\s+to)\b", ["anchor_phrase"]),
    _pattern(
        "ANCHOR_AS_DEFINED_IN_001", ANCHOR,
        r"\b(as\s+(?:defined|specified|described|set\s+forth)\s+in)\b",
        ["anchor_phrase"],
    ),
    _pattern("ANCHOR_CITATION_BRACKET_001", ANCHOR, r"(\[\d+\])", ["citation"], flags=CASE_SENSITIVE),
    _pattern(
        "ANCHOR_CITATION_PAREN_001", ANCHOR,
        r"(\([A-Z]{2,}[\s\-]?\d*[^)]*\))",
        ["citation"], flags=CASE_SENSITIVE,
    ),
    _pattern("ANCHOR_URL_001", ANCHOR, r"(https?://[^\s<>\"{}|\\^`\[\]]+)", ["url"]),
    _pattern("ANCHOR_ISO_001", ANCHOR, r"\b(ISO\s*\d{4,5}(?:[-:]\d+)?)\b", ["standard"]),
    _pattern("ANCHOR_RFC_001", ANCHOR, r"\b(RFC\s*\d{3,5})\b", ["standard"]),
)


# ============================================================
# DEFAULT REGISTRY: constructed once, never mutated
# ============================================================

DEFAULT_REGISTRY = PatternRegistry(version=REGISTRY_VERSION, patterns=PATTERNS_V0_1)
