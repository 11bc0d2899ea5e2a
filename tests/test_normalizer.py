import pytest

from normalizer import normalize_code, normalize_codes


class TestNormalizeCode:
    @pytest.mark.parametrize("raw", ["CS 1331", "cs1331", "CS-1331", "cs - 1331", "  CS  1331  "])
    def test_spellings(self, raw):
        assert normalize_code(raw) == "CS 1331"

    def test_suffix_letter(self):
        assert normalize_code("cs 4803x") == "CS 4803X"

    def test_long_dept(self):
        assert normalize_code("APPH1040") == "APPH 1040"

    @pytest.mark.parametrize("raw", [None, "", "CS", "1331", "CS 13", "Computer Science 1331"])
    def test_rejects(self, raw):
        assert normalize_code(raw) is None


class TestNormalizeCodes:
    def test_string_input(self):
        result = normalize_codes("cs1301, MATH 1551\nENGL-1101; nope")
        assert result["valid"] == ["CS 1301", "MATH 1551", "ENGL 1101"]
        assert result["invalid"] == ["nope"]

    def test_duplicates_dropped(self):
        assert normalize_codes(["CS 1301", "cs1301", "CS-1301"])["valid"] == ["CS 1301"]

    def test_catalog_filter(self):
        result = normalize_codes(["CS 1301", "CS 9999"], catalog_codes={"CS 1301"})
        assert result["valid"] == ["CS 1301"]
        assert result["not_in_catalog"] == ["CS 9999"]

    def test_none(self):
        assert normalize_codes(None) == {"valid": [], "invalid": [], "not_in_catalog": []}
