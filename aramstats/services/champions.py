# aramstats/services/champions.py
# ============================================================================
# Vue "ChampionData" consommée par l'UI + règles d'affichage
# ============================================================================

from __future__ import annotations

from typing import Any, Dict, List

from aramstats.models.champion import (
    DEFAULT_MODE,
    GAME_MODES,
    ChampionRecord,
    FetchResult,
)

# apiname du wiki → nom attendu côté UI / assets
DISPLAY_RENAMES: dict[str, str] = {
    "GnarBig": "Gnar",
    "MonkeyKing": "Wukong",
}


def display_name(api_name: str) -> str:
    """Display-compatible identifier for a wiki API name."""
    return DISPLAY_RENAMES.get(api_name, api_name)


def apply_display_names(result: FetchResult) -> FetchResult:
    """Fill `display_name` on every record, in place."""
    for record in result.records.values():
        record.display_name = display_name(record.name)
    return result


def has_modifications(record: ChampionRecord, mode: str = DEFAULT_MODE) -> bool:
    return record.stats_for(mode).is_modified()


def available_game_modes(result: FetchResult) -> List[str]:
    """Modes with data for at least one champion, ARAM always first."""
    present = {mode for record in result.records.values() for mode in record.modes}
    return [DEFAULT_MODE] + [m for m in GAME_MODES if m != DEFAULT_MODE and m in present]


def champion_data(result: FetchResult) -> Dict[str, Dict[str, Any]]:
    """`id -> {name, aram, gameModes, ...}` mapping for the presentation layer."""
    data = {}
    for key, record in result.records.items():
        entry = record.to_dict()
        entry["id"] = key
        entry["name"] = record.display_name or display_name(record.name)
        entry["apiname"] = record.name
        entry["hasModifications"] = {mode: has_modifications(record, mode) for mode in record.modes}
        entry["hasModifications"][DEFAULT_MODE] = has_modifications(record)
        data[key] = entry
    return data
