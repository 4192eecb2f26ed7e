"""
Test: normalization keys, number extraction, rules loading.
"""
import json
import pytest
from analisis.utils import norm_key, extract_number, clean_display, load_rules, user_data_dir


class TestNormKey:
    def test_collapses_equivalent_forms(self):
        assert norm_key("Ali  Bin-Abu!") == norm_key("ali bin abu")

    def test_lowercase_and_trim(self):
        assert norm_key("  5 MERAH  ") == "5 merah"

    def test_non_alnum_become_spaces(self):
        assert norm_key("A/B.C") == "a b c"

    def test_empty_and_none(self):
        assert norm_key("") == ""
        assert norm_key(None) == ""

    @pytest.mark.parametrize("raw", [
        "Ali  Bin-Abu!", "  ", "Siti@Aminah", "5 Merah", "Bahasa   Inggeris", "Ñoño 12", "a|b|c",
    ])
    def test_idempotent(self, raw):
        once = norm_key(raw)
        assert norm_key(once) == once


class TestExtractNumber:
    def test_plain(self):
        assert extract_number("4") == 4

    def test_prefixed(self):
        assert extract_number("TP4") == 4
        assert extract_number("Band 5") == 5

    def test_first_integer_wins(self):
        assert extract_number("TP 3 / 6") == 3

    def test_none_found(self):
        assert extract_number("tiada") == 0
        assert extract_number("") == 0
        assert extract_number(None) == 0


def test_clean_display_uppercases_and_collapses():
    assert clean_display("  ali   bin\tabu ") == "ALI BIN ABU"


def test_load_rules_defaults_when_missing(tmp_path):
    rules = load_rules(tmp_path / "nope.json")
    assert rules["duplicates"]["similarity_threshold"] == 0.8
    assert rules["storage"]["file_name"] == "students.json"


def test_load_rules_overrides_one_level(tmp_path):
    p = tmp_path / "rules.json"
    p.write_text(json.dumps({"duplicates": {"max_typo_distance": 3}}), encoding="utf-8")
    rules = load_rules(p)
    assert rules["duplicates"]["max_typo_distance"] == 3
    assert rules["duplicates"]["min_typo_length"] == 5


def test_user_data_dir_env_override(monkeypatch, tmp_path):
    monkeypatch.setenv("ANALISIS_DATA_DIR", str(tmp_path / "x"))
    assert user_data_dir() == tmp_path / "x"
