"""
Bytecode / Program Analyzer — matches the versioned pattern table against
contract bytecode (EVM) or a mint account view (Solana).

Pure: no I/O beyond loading the pattern table once. The same code and table
always produce the same analysis.
"""
import base64
import binascii
import json
from functools import lru_cache
from pathlib import Path
from agents.scanner.models.schemas import BytecodeAnalysis, SimilarityMatch
import structlog

logger = structlog.get_logger()

PATTERNS_PATH = Path(__file__).parent.parent / "patterns" / "signatures.json"

MAX_HIDDEN_FUNCTIONS = 10

# EVM opcodes
PUSH1 = 0x60
PUSH4 = 0x63
PUSH32 = 0x7F


@lru_cache(maxsize=None)
def load_patterns(path: str | None = None) -> dict:
    """Load the pattern table. Cached per path."""
    with open(path or PATTERNS_PATH, encoding="utf-8") as f:
        table = json.load(f)
    if "version" not in table:
        raise ValueError(f"pattern table without version: {path or PATTERNS_PATH}")
    return table


class CodeView:
    """Normalized view of a contract or program used by every rule kind."""

    def __init__(self, raw_code: str, family: str):
        self.family = family
        self.raw = raw_code or ""
        self.code = b""
        self.hex = ""
        self.selectors: set[str] = set()
        self.opcodes: set[str] = set()
        self.constants: set[int] = set()
        self.authorities: dict = {}
        self.extensions: dict = {}

        if family == "evm":
            self._parse_evm()
        elif family == "solana":
            self._parse_solana()

    def _parse_evm(self):
        text = self.raw[2:] if self.raw[:2].lower() == "0x" else self.raw
        try:
            self.code = bytes.fromhex(text)
        except ValueError:
            logger.debug("bytecode_not_hex", length=len(self.raw))
            return
        self.hex = self.code.hex()

        # Linear sweep; PUSH immediates are data, not opcodes
        i = 0
        while i < len(self.code):
            op = self.code[i]
            self.opcodes.add(f"{op:02x}")
            if PUSH1 <= op <= PUSH32:
                size = op - PUSH1 + 1
                immediate = self.code[i + 1:i + 1 + size]
                if op == PUSH4 and len(immediate) == 4:
                    self.selectors.add(immediate.hex())
                if size <= 4 and immediate:
                    self.constants.add(int.from_bytes(immediate, "big"))
                i += size
            i += 1

    def _parse_solana(self):
        try:
            view = json.loads(self.raw)
        except ValueError:
            self.code = self.raw.encode("utf-8")
            return
        if not isinstance(view, dict):
            return
        self.authorities = view.get("authorities") or {}
        self.extensions = view.get("extensions") or {}
        data = view.get("data") or ""
        try:
            self.code = base64.b64decode(data, validate=True) if data else b""
        except (binascii.Error, ValueError):
            self.code = data.encode("utf-8")

    @property
    def size(self) -> int:
        return len(self.code) if self.code else len(self.raw)

    def contains_text(self, marker: str) -> bool:
        if self.family == "evm" and self.hex:
            return marker.encode("utf-8").hex() in self.hex
        return marker in self.raw or marker.encode("utf-8") in self.code


def rule_matches(rule: dict, view: CodeView) -> bool:
    kind = rule["kind"]
    values = rule["values"]
    if kind == "selector":
        return any(v.lower() in view.selectors for v in values)
    if kind == "opcode":
        return any(v.lower() in view.opcodes for v in values)
    if kind == "hex":
        return any(v.lower() in view.hex for v in values)
    if kind == "text":
        return any(view.contains_text(v) for v in values)
    if kind == "authority":
        return any(view.authorities.get(v) for v in values)
    if kind == "extension":
        return any(v in view.extensions for v in values)
    raise ValueError(f"unknown rule kind: {kind}")


def _dedupe(names: list[str]) -> list[str]:
    return list(dict.fromkeys(names))


def match_markers(raw_code: str, family: str, section: str, patterns: dict | None = None) -> list[str]:
    """Names of the rules in a marker section (e.g. fee_markers, anti_bot) that match."""
    patterns = patterns or load_patterns()
    rules = patterns.get(family, {}).get(section, [])
    if not rules or not raw_code:
        return []
    view = CodeView(raw_code, family)
    return _dedupe([r["name"] for r in rules if rule_matches(r, view)])


def _similarity(selectors: set[str], patterns: dict) -> list[SimilarityMatch]:
    exploits = patterns.get("known_exploits") or {}
    threshold = exploits.get("min_similarity", 1.0)
    matches = []
    for fingerprint in exploits.get("fingerprints", []):
        wanted = {s.lower() for s in fingerprint["selectors"]}
        if not wanted:
            continue
        score = len(wanted & selectors) / len(wanted)
        if score >= threshold:
            matches.append(SimilarityMatch(name=fingerprint["name"], similarity_score=round(score, 4)))
    return sorted(matches, key=lambda m: (-m.similarity_score, m.name))


def analyze_code(raw_code: str, family: str, patterns: dict | None = None) -> BytecodeAnalysis:
    """Match the pattern table against raw code for the given chain family.

    Unsupported families and empty code yield an empty analysis.
    """
    patterns = patterns or load_patterns()
    section = patterns.get(family)
    if section is None or not raw_code:
        return BytecodeAnalysis(pattern_version=patterns.get("version"))

    view = CodeView(raw_code, family)
    flags: dict[str, bool] = {}
    matched = []
    for rule in section.get("rules", []):
        if rule_matches(rule, view):
            flags[rule["flag"]] = True
            matched.append(rule["name"])

    access_controls = [r["name"] for r in section.get("access_controls", []) if rule_matches(r, view)]

    hidden: list[str] = []
    time_locks: list[int] = []
    similarity: list[SimilarityMatch] = []
    if family == "evm":
        standard = {s.lower() for s in section.get("standard_selectors", [])}
        hidden = sorted(view.selectors - standard)[:MAX_HIDDEN_FUNCTIONS]
        time_locks = sorted(t for t in section.get("time_locks", []) if t in view.constants)
        similarity = _similarity(view.selectors, patterns)

    return BytecodeAnalysis(
        contract_size=view.size,
        function_count=len(view.selectors),
        access_controls=_dedupe(access_controls),
        matched_patterns=_dedupe(matched),
        hidden_functions=hidden,
        time_locks=time_locks,
        similarity_matches=similarity,
        pattern_version=patterns.get("version"),
        **flags,
    )
