"""Shared fixtures: a trimmed-down Module:ChampionData page."""

import html

import pytest

SAMPLE_LUA = """-- <pre>
return {
  ["Aatrox"] = {
    ["id"]          = 266,
    ["apiname"]     = "Aatrox",
    ["title"]       = "the Darkin Blade",
    ["changes"]     = "V14.3",
    ["role"]        = {"Juggernaut", "Diver"},
    ["stats"]       = {
      ["hp_base"]     = 650,
      ["hp_lvl"]      = 114,
      ["aram"]        = {
        ["dmg_dealt"]   = 1.05,
        ["dmg_taken"]   = 0.95,
      },
    },
    ["skill_i"]     = {"Deathbringer Stance"},
    ["skill_q"]     = {"The Darkin Blade"},
  },
  ["Wukong"] = {
    ["id"]          = 62,
    ["apiname"]     = "MonkeyKing",
    ["changes"]     = "V14.10",
    ["stats"]       = {
      ["aram"] = { ["dmg_dealt"] = 1.1, ["ability_haste"] = -10, ["tenacity"] = 1.2 },
      ["urf"]  = { ["dmg_taken"] = 0.9 },
    },
  },
  ["Jinx"] = {
    ["id"]          = 222,
    ["apiname"]     = "Jinx",
    ["title"]       = "the Loose {Cannon}", -- braces inside a string
    ["changes"]     = "V13.24",
    ["stats"]       = { ["hp_base"] = 630 },
  },
}
-- </pre>"""


def edit_page(lua: str) -> str:
    """Wrap a Lua module the way the wiki's ?action=edit view does."""
    return (
        "<!DOCTYPE html><html><head><title>Editing Module:ChampionData/data</title>"
        "<script>function f(){return {a: 1};}</script></head><body>"
        '<textarea id="wpTextbox1" name="wpTextbox1" readonly="">'
        f"{html.escape(lua, quote=True)}"
        "</textarea></body></html>"
    )


@pytest.fixture
def sample_lua() -> str:
    return SAMPLE_LUA


@pytest.fixture
def wiki_page() -> str:
    return edit_page(SAMPLE_LUA)


@pytest.fixture
def make_edit_page():
    return edit_page
