import json
import pytest
from agents.scanner.services.bytecode import CodeView, analyze_code, load_patterns, match_markers, rule_matches

MINT = "6340c10f19"          # PUSH4 mint(address,uint256)
OWNER = "638da5cb5b"         # PUSH4 owner()
SELFDESTRUCT = "ff"
DELEGATECALL = "f4"
ONE_DAY = "62015180"         # PUSH3 86400


def evm(*chunks: str) -> str:
    return "0x" + "".join(chunks)


def test_pattern_table_is_versioned():
    patterns = load_patterns()
    assert patterns["version"]
    assert analyze_code(evm(MINT), "evm").pattern_version == patterns["version"]


def test_unguarded_mint_is_flagged():
    analysis = analyze_code(evm(MINT), "evm")
    assert analysis.has_mint_function
    assert analysis.access_controls == ()
    assert analysis.unrestricted_mint
    assert "mint" in analysis.matched_patterns
    assert analysis.hidden_functions == ("40c10f19",)


def test_owner_gate_counts_as_access_control():
    analysis = analyze_code(evm(MINT, OWNER), "evm")
    assert analysis.has_mint_function
    assert analysis.access_controls == ("onlyOwner",)
    assert not analysis.unrestricted_mint
    assert "onlyOwner" not in analysis.matched_patterns


def test_opcodes_inside_push_data_are_ignored():
    # PUSH4 0xffffffff holds four SELFDESTRUCT bytes as data only
    assert not analyze_code(evm("63ffffffff"), "evm").has_self_destruct
    assert analyze_code(evm("6000", SELFDESTRUCT), "evm").has_self_destruct


def test_delegatecall_marks_proxy():
    analysis = analyze_code(evm("6000", DELEGATECALL), "evm")
    assert analysis.proxy_pattern
    assert "delegatecall" in analysis.matched_patterns


def test_eip1967_slot_marks_proxy():
    slot = "360894a13ba1a3210667c828492db98dca3e2076cc3735a920a3ca505d382bbc"
    assert analyze_code(evm("7f", slot), "evm").proxy_pattern


def test_time_lock_constants():
    assert analyze_code(evm(ONE_DAY), "evm").time_locks == (86400,)


def test_blacklist_text_marker():
    code = evm("6000", "blacklist".encode("utf-8").hex())
    assert analyze_code(code, "evm").has_freeze_authority


def test_known_exploit_similarity():
    # three of the four adjustable_tax_trap selectors
    code = evm("638ee88c53", "63c0246668", "63ec28438a")
    matches = analyze_code(code, "evm").similarity_matches
    assert [m.name for m in matches] == ["adjustable_tax_trap"]
    assert matches[0].similarity_score == 0.75


def test_analysis_is_deterministic():
    code = evm(MINT, OWNER, ONE_DAY, "6000", DELEGATECALL, SELFDESTRUCT)
    assert analyze_code(code, "evm") == analyze_code(code, "evm")
    assert analyze_code(code, "evm").model_dump() == analyze_code(code.upper().replace("0X", "0x"), "evm").model_dump()


def test_empty_or_unknown_family_yields_empty_analysis():
    assert analyze_code("", "evm").contract_size == 0
    empty = analyze_code("deadbeef", "cardano")
    assert not empty.matched_patterns
    assert empty.pattern_version == load_patterns()["version"]


def test_solana_authorities_and_extensions():
    raw = json.dumps({
        "authorities": {"mintAuthority": "Mint1111111111111111111111111111111111111", "freezeAuthority": None},
        "extensions": {"permanentDelegate": {"delegate": "Dlg1111"}},
        "data": "AQID",
    })
    analysis = analyze_code(raw, "solana")
    assert analysis.has_mint_function
    assert analysis.unrestricted_mint
    assert not analysis.has_freeze_authority
    assert analysis.proxy_pattern
    assert analysis.contract_size == 3


def test_solana_revoked_authorities_are_clean():
    raw = json.dumps({"authorities": {"mintAuthority": None, "freezeAuthority": None}, "extensions": {}, "data": ""})
    analysis = analyze_code(raw, "solana")
    assert not analysis.has_mint_function
    assert not analysis.has_freeze_authority


def test_marker_sections():
    code = evm("638ee88c53", "cooldown".encode("utf-8").hex())
    assert match_markers(code, "evm", "fee_markers") == ["tax_fee"]
    assert match_markers(code, "evm", "anti_bot") == ["cooldown"]
    assert match_markers("", "evm", "anti_bot") == []


def test_unknown_rule_kind_is_rejected():
    with pytest.raises(ValueError):
        rule_matches({"kind": "regex", "values": ["x"]}, CodeView("0x00", "evm"))
