"""Unit tests for the Lua table extractor and the brace scanner."""

import re

import pytest

from aramstats.errors import ExtractionError
from aramstats.wiki.lua import (
    extract_table,
    find_block_end,
    iter_fields,
    lua_int,
    lua_number,
    lua_string,
    lua_string_list,
)

NESTED_LUA = """return {
  ["Ornn"] = {
    ["id"] = 516,
    ["apiname"] = "Ornn",
    ["stats"] = {
      ["aram"] = {
        ["notes"] = { ["source"] = { ["patch"] = 14 } },
        ["dmg_dealt"] = 1.1,
      },
    },
  },
}"""


class TestExtractTable:
    """Locating the `return { ... }` literal in a page."""

    def test_extracts_from_edit_textarea(self, wiki_page):
        """Entities are decoded and the textarea wins over inline scripts."""
        literal = extract_table(wiki_page)

        assert literal.startswith("{")
        assert literal.endswith("}")
        assert '["apiname"]     = "Aatrox"' in literal
        assert "&quot;" not in literal
        assert "a: 1" not in literal

    def test_extracts_trailing_statement(self):
        """Literal as the last statement of a plain document."""
        page = 'local x = 1\nreturn {["A"] = {["id"] = 1}}'
        assert extract_table(page) == '{["A"] = {["id"] = 1}}'

    def test_extracts_from_html_comment(self):
        page = '<html><!-- return { ["B"] = { ["id"] = 2 } } --><p>x</p></html>'
        assert extract_table(page) == '{ ["B"] = { ["id"] = 2 } }'

    def test_decodes_entities_before_scanning(self):
        page = "return {[&quot;A&quot;] = {[&#39;k&#39;] = &quot;x &amp; y&quot;}}"
        assert extract_table(page) == """{["A"] = {['k'] = "x & y"}}"""

    def test_three_level_nesting_is_extracted_whole(self, make_edit_page):
        """A non-recursive regex truncates nested stat blocks; the scanner must not."""
        literal = extract_table(make_edit_page(NESTED_LUA))

        assert literal == NESTED_LUA[len("return "):]
        assert '["dmg_dealt"] = 1.1' in literal

        # Régression : la regex naïve s'arrête à la première accolade fermante
        naive = re.search(r'\["aram"\]\s*=\s*{([^}]+)}', literal).group(1)
        assert "dmg_dealt" not in naive

    def test_no_literal_raises(self):
        with pytest.raises(ExtractionError):
            extract_table("<html><body>Checking your browser...</body></html>")

    def test_empty_page_raises(self):
        with pytest.raises(ExtractionError):
            extract_table("")

    def test_unbalanced_literal_raises(self):
        with pytest.raises(ExtractionError):
            extract_table('return { ["A"] = { ["id"] = 1 }')


class TestFindBlockEnd:
    """Depth-counting scanner."""

    def test_matches_outer_brace(self):
        text = "{ a = { b = { c = 1 } }, d = 2 } tail"
        assert text[: find_block_end(text, 0) + 1] == "{ a = { b = { c = 1 } }, d = 2 }"

    def test_ignores_braces_in_strings(self):
        text = """{ t = "}}}", u = '{', v = "esc \\" }" }"""
        assert find_block_end(text, 0) == len(text) - 1

    def test_ignores_braces_in_comments(self):
        text = "{ a = 1, -- } not closing\n b = 2 --[[ } ]] }"
        assert find_block_end(text, 0) == len(text) - 1

    def test_ignores_braces_in_long_strings(self):
        text = '{ a = [[ } ]], b = [==[ ]] } ]==], c = { } }'
        assert find_block_end(text, 0) == len(text) - 1

    def test_ignores_braces_in_long_comments(self):
        text = "{ a = 1, --[==[ } ]] } ]==] b = 2 }"
        assert find_block_end(text, 0) == len(text) - 1

    def test_bracket_keys_are_not_long_strings(self):
        text = '{ ["a"] = { [1] = 2 } }'
        assert find_block_end(text, 0) == len(text) - 1

    def test_unbalanced_returns_minus_one(self):
        assert find_block_end("{ { }", 0) == -1

    def test_requires_opening_brace(self):
        with pytest.raises(ValueError):
            find_block_end("abc", 0)


class TestIterFields:
    """Top-level field walk of a table."""

    def test_bracket_bare_and_positional_keys(self):
        fields = list(iter_fields('{ ["a"] = 1, b = "two", [3] = { x = 1 }, "pos", }'))
        assert fields == [("a", "1"), ("b", '"two"'), (3, "{ x = 1 }"), (1, '"pos"')]

    def test_nested_tables_are_returned_whole(self):
        fields = dict(iter_fields('{ ["stats"] = { ["aram"] = { ["x"] = { } } }, ["id"] = 5 }'))
        assert fields["stats"] == '{ ["aram"] = { ["x"] = { } } }'
        assert fields["id"] == "5"

    def test_long_string_value_keeps_following_fields(self):
        fields = dict(iter_fields('{ ["note"] = [[ has } brace, ]], ["id"] = 5 }'))
        assert fields["note"] == "[[ has } brace, ]]"
        assert fields["id"] == "5"

    def test_body_without_outer_braces(self):
        fields = list(iter_fields('["Aatrox"]={["id"]=266}'))
        assert fields == [("Aatrox", '{["id"]=266}')]


class TestScalars:

    def test_lua_string(self):
        assert lua_string('"Kai\\"Sa"') == 'Kai"Sa'
        assert lua_string("'Nunu'") == "Nunu"
        assert lua_string("266") is None
        assert lua_string(None) is None

    def test_lua_long_string(self):
        assert lua_string("[[Loose }]]") == "Loose }"
        assert lua_string("[==[\nline ]] two]==]") == "line ]] two"
        assert lua_string("[[unterminated") is None

    def test_lua_number(self):
        assert lua_number("1.05") == 1.05
        assert lua_number("-10") == -10.0
        assert lua_number(".5") == 0.5
        assert lua_number("nil") is None
        assert lua_number('"1.0"') is None

    def test_lua_int(self):
        assert lua_int("266") == 266
        assert lua_int("2.5") is None
        assert lua_int(None) is None

    def test_lua_string_list(self):
        assert lua_string_list('{"Juggernaut", "Diver"}') == ["Juggernaut", "Diver"]
        assert lua_string_list('"Mage"') == ["Mage"]
        assert lua_string_list(None) == []
