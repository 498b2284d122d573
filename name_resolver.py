"""Street / highway name extraction for directions steps.

A step either carries a usable structured ``name`` or we fall back to its
free-text instruction. Instruction parsing is an ordered tuple of named
rules (``INSTRUCTION_RULES``); the first rule whose predicate matches decides
the result:

  highway_number     "Keep right onto ON-401 E"           -> "Hwy 401"
  named_expressway   "Take the ramp onto the DVP"         -> "Don Valley Pkwy"
  generic_movement   "Keep right" / "Continue"            -> ""  (left to chains)
  trailing_clause    "Turn left onto Gerrard Street East" -> "Gerrard St E"
  full_text          anything else                        -> normalized text
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from route_models import Step

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")
_UNNAMED_RE = re.compile(r"^unnamed\b", re.I)
_DASH_RE = re.compile(r"^[-–—]+$")
_RAMP_RE = re.compile(r"\s*\b(?:Onramp|Offramp|On-ramp|Off-ramp|Ramp)\b.*$", re.I)

ABBREVIATIONS: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"\b(?:Highway|Hwy)\b\.?", re.I), "Hwy"),
    (re.compile(r"\b(?:Expressway|Expwy|Expy)\b\.?", re.I), "Expy"),
    (re.compile(r"\b(?:Parkway|Pkway|Pkwy)\b\.?", re.I), "Pkwy"),
    (re.compile(r"\bStreet\b", re.I), "St"),
    (re.compile(r"\bAvenue\b", re.I), "Ave"),
    (re.compile(r"\bRoad\b", re.I), "Rd"),
    (re.compile(r"\bBoulevard\b", re.I), "Blvd"),
    (re.compile(r"\bDrive\b", re.I), "Dr"),
)
_TRAILING_COMPASS_RE = re.compile(r"\s+(North|South|East|West)$", re.I)

# Highway numbers: "Hwy 401", "Highway 404 North", "ON-401", "ON Highway 27", "I-95"
_PREFIXED_NUMBER_RE = re.compile(
    r"\b(?:(?:ON|Ontario|QC|US|SR)[-\s]+)?(?:Hwy|Highway|Route|Rte)\.?[-\s]*(?P<num>\d{2,3})\b"
    r"(?:\s*[-/]?\s*(?P<bound>[NESW]|North|East|South|West)\b)?",
    re.I,
)
_DASHED_NUMBER_RE = re.compile(
    r"\b(?:ON|QC|US|SR)-(?P<num>\d{2,3})\b(?:\s*(?P<bound>[NESW]|North|East|South|West)\b)?",
    re.I,
)
_INTERSTATE_RE = re.compile(r"\bI-(?P<num>\d{2,3})\b(?:\s*(?P<bound>[NESW])\b)?")
_TOWARD_NUMBER_RE = re.compile(
    r"\b(?:onto|to|toward|towards)\s+(?P<num>\d{2,3})\b(?:\s*(?P<bound>[NESW]|North|East|South|West)\b)?",
    re.I,
)
# A whole structured name that is only a highway number: "ON-401", "ON 401 E", "Ontario Highway 27"
_HIGHWAY_ONLY_RE = re.compile(
    r"^(?:(?:ON|Ontario|QC|US|SR)[-\s]*)?(?:(?:Hwy|Highway|Route|Rte)\.?[-\s]*)?(?P<num>\d{2,3})"
    r"(?:\s*[-/]?\s*(?:[NESW]|North|East|South|West))?$",
    re.I,
)
_INTERSTATE_ONLY_RE = re.compile(r"^I-(?P<num>\d{2,3})(?:\s*[NESW])?$")

NAMED_EXPRESSWAYS: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"\bGardiner\b", re.I), "Gardiner Expy"),
    (re.compile(r"\bDon Valley (?:Parkway|Pkwy)\b|\bDVP\b", re.I), "Don Valley Pkwy"),
    (re.compile(r"\bQEW\b|\bQueen Elizabeth Way\b", re.I), "QEW"),
)

# "to take the ramp", "to stay on ...": a manoeuvre, not a destination road
_VERB_WORDS = r"(?:take|stay|continue|merge|keep|exit|go|follow|turn|use|make|head)"
_VERB_PHRASE_RE = re.compile(r"^" + _VERB_WORDS + r"\b", re.I)

_GENERIC_RE = re.compile(
    r"^(?:keep\s+(?:left|right)|continue(?:\s+straight)?|head\s+(?:(?:north|south)(?:east|west)?|east|west))\b"
    r"(?!.*\b(?:onto|on|towards|toward|to(?!\s+%s\b))\s+\S)" % _VERB_WORDS,
    re.I,
)
_CLAUSE_RE = re.compile(
    r"\b(?P<kw>onto|on|towards|toward|to)\s+(?P<name>[\w .'\-/&]+?)"
    r"(?=\s+(?:onto|on|towards|toward|to)\s|\s*[,;]|\.?\s*$)",
    re.I,
)
_SIDE_PHRASE_RE = re.compile(r"^(?:the\s+)?(?:left|right)$", re.I)
_UNNAMED_TARGET_RE = re.compile(r"\b(?:onto|on|to|toward|towards)\s+(?:unnamed\b|[-–—]+$)", re.I)

_HIGHWAY_NAME_RE = re.compile(
    r"^(?:Hwy \d{2,3}|I-\d{2,3})\b|\b(?:Expy|QEW|Don Valley Pkwy)\b", re.I
)


def clean_text(text: Optional[str]) -> str:
    """Strip markup and entities, collapse whitespace."""
    s = _TAG_RE.sub(" ", str(text or ""))
    s = html.unescape(s)
    return _WS_RE.sub(" ", s).strip()


def is_unnamed(raw: Optional[str]) -> bool:
    s = str(raw or "").strip()
    return not s or bool(_UNNAMED_RE.match(s)) or bool(_DASH_RE.match(s))


def normalize_name(raw: Optional[str]) -> str:
    """Canonical display form of a road name; empty for "unnamed" sentinels."""
    if is_unnamed(raw):
        return ""
    s = clean_text(raw)
    s = _RAMP_RE.sub("", s).strip()
    m = _INTERSTATE_ONLY_RE.match(s)
    if m:
        return f"I-{m.group('num')}"
    m = _HIGHWAY_ONLY_RE.match(s)
    if m:
        return f"Hwy {m.group('num')}"
    for pattern, abbr in ABBREVIATIONS:
        s = pattern.sub(abbr, s)
    s = _TRAILING_COMPASS_RE.sub(lambda m: " " + m.group(1)[0].upper(), s)
    return _WS_RE.sub(" ", s).strip()


def is_highway_name(name: Optional[str]) -> bool:
    return bool(_HIGHWAY_NAME_RE.search(name or ""))


def is_generic_instruction(text: Optional[str]) -> bool:
    """True for movements that carry no street name.

    "keep right", "continue", "head north", or a turn onto an unnamed road.
    """
    return _is_generic_text(clean_text(text))


# ---------------------------- Instruction rules ----------------------------

def _is_generic_text(text: str) -> bool:
    return bool(_GENERIC_RE.match(text) or _UNNAMED_TARGET_RE.search(text))


def _highway_number(text: str) -> str:
    m = _INTERSTATE_RE.search(text)
    if m:
        return f"I-{m.group('num')}"
    for pattern in (_PREFIXED_NUMBER_RE, _DASHED_NUMBER_RE, _TOWARD_NUMBER_RE):
        m = pattern.search(text)
        if m:
            return f"Hwy {m.group('num')}"
    return ""


def _named_expressway(text: str) -> str:
    for pattern, name in NAMED_EXPRESSWAYS:
        if pattern.search(text):
            return name
    return ""


def _clause_name(candidate: str) -> str:
    candidate = candidate.strip()
    if _SIDE_PHRASE_RE.match(candidate) or _VERB_PHRASE_RE.match(candidate):
        return ""
    return normalize_name(candidate)


def _trailing_clause(text: str) -> str:
    """Last "onto/on <name>" clause; a "to/toward <name>" clause only when there is none."""
    primary = secondary = ""
    for m in _CLAUSE_RE.finditer(text):
        name = _clause_name(m.group("name"))
        if not name:
            continue
        if m.group("kw").lower() in ("onto", "on"):
            primary = name
        else:
            secondary = name
    return primary or secondary


@dataclass(frozen=True)
class InstructionRule:
    name: str
    predicate: Callable[[str], bool]
    extractor: Callable[[str], str]


INSTRUCTION_RULES: Tuple[InstructionRule, ...] = (
    InstructionRule("highway_number", lambda t: bool(_highway_number(t)), _highway_number),
    InstructionRule("named_expressway", lambda t: bool(_named_expressway(t)), _named_expressway),
    InstructionRule("generic_movement", _is_generic_text, lambda t: ""),
    InstructionRule("trailing_clause", lambda t: bool(_trailing_clause(t)), _trailing_clause),
    InstructionRule("full_text", lambda t: bool(t), normalize_name),
)


def name_from_instruction(instruction: Optional[str]) -> str:
    text = clean_text(instruction)
    for rule in INSTRUCTION_RULES:
        if rule.predicate(text):
            return rule.extractor(text)
    return ""


def extract_name(step: Step) -> str:
    """Best display name for a step; empty when only chain resolution can name it."""
    declared = normalize_name(step.name)
    if declared:
        return declared
    return name_from_instruction(step.instruction)


__all__ = [
    "InstructionRule",
    "INSTRUCTION_RULES",
    "clean_text",
    "is_unnamed",
    "normalize_name",
    "is_highway_name",
    "is_generic_instruction",
    "name_from_instruction",
    "extract_name",
]
