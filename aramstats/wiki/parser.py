# aramstats/wiki/parser.py
# ============================================================================
# Module:ChampionData → ChampionRecord
# Une entrée sans id ou sans apiname est ignorée (log debug), jamais à moitié
# stockée. Le renommage d'affichage (GnarBig, MonkeyKing) est fait par l'appelant.
# ============================================================================

from __future__ import annotations

import logging
import re
from typing import Dict, Optional

from aramstats.models.champion import GAME_MODES, ChampionRecord, StatModifiers
from aramstats.wiki.lua import (
    is_table,
    iter_fields,
    lua_int,
    lua_number,
    lua_string,
    lua_string_list,
)
from aramstats.wiki.stats import map_stats

log = logging.getLogger(__name__)

_API_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")
_PATCH_RE = re.compile(r"""\[\s*["']changes["']\s*\]\s*=\s*["']V(\d+)\.(\d+)["']""")
SKILL_KEYS = ("skill_i", "skill_q", "skill_w", "skill_e", "skill_r")


def _parse_modes(block: str) -> tuple[Dict[str, StatModifiers], Dict[str, float]]:
    """Split a `stats` block into per-mode modifiers and flat base stats."""
    modes: Dict[str, StatModifiers] = {}
    base_stats: Dict[str, float] = {}
    for key, value in iter_fields(block):
        if not isinstance(key, str):
            continue
        if key in GAME_MODES and is_table(value):
            modes[key] = map_stats(iter_fields(value))
            continue
        number = lua_number(value)
        if number is not None:
            base_stats[key] = number
    return modes, base_stats


def parse_entry(entry_key: object, block: str) -> Optional[ChampionRecord]:
    """Parse one `["<name>"] = { ... }` entry, None when id/apiname is missing."""
    fields = {k: v for k, v in iter_fields(block) if isinstance(k, str)}

    champ_id = lua_int(fields.get("id"))
    if champ_id is None:
        log.debug("Skipping %r - no id found", entry_key)
        return None

    api_name = lua_string(fields.get("apiname"))
    if not api_name or not _API_NAME_RE.match(api_name):
        log.debug("Skipping %r (id %s) - no usable apiname", entry_key, champ_id)
        return None

    modes: Dict[str, StatModifiers] = {}
    base_stats: Dict[str, float] = {}
    stats_block = fields.get("stats")
    if is_table(stats_block):
        modes, base_stats = _parse_modes(stats_block)

    # Anciennes révisions : blocs de mode directement sous l'entrée
    for mode in GAME_MODES:
        if mode not in modes and is_table(fields.get(mode)):
            modes[mode] = map_stats(iter_fields(fields[mode]))

    skills = {}
    for skill_key in SKILL_KEYS:
        names = lua_string_list(fields.get(skill_key))
        if names:
            skills[skill_key] = names

    return ChampionRecord(
        id=champ_id,
        name=api_name,
        modes=modes,
        title=lua_string(fields.get("title")),
        roles=lua_string_list(fields.get("role")),
        skills=skills,
        base_stats=base_stats,
        last_changed=lua_string(fields.get("changes")),
    )


def parse_records(literal: str) -> Dict[str, ChampionRecord]:
    """
    Parse the extracted Module:ChampionData table.

    Args:
        literal: The `{ ... }` span returned by extract_table()

    Returns:
        Records keyed by str(id); may be empty; the caller decides what an
        empty parse means.
    """
    records: Dict[str, ChampionRecord] = {}
    skipped = 0
    for entry_key, value in iter_fields(literal):
        if not is_table(value):
            continue
        record = parse_entry(entry_key, value)
        if record is None:
            skipped += 1
            continue
        if record.key in records:
            log.debug("Duplicate id %s (%s), keeping the last entry", record.key, record.name)
        records[record.key] = record

    log.info("Parsed %d champions (%d entries skipped)", len(records), skipped)
    return records


def extract_patch_version(text: str) -> Optional[str]:
    """
    Highest `["changes"] = "V<major>.<minor>"` label found in the text.

    This is the most recent patch that touched any champion; the page gives
    no release date, so fetch time stands in for it downstream.
    """
    versions = {(int(major), int(minor)) for major, minor in _PATCH_RE.findall(text or "")}
    if not versions:
        return None
    major, minor = max(versions)
    return f"V{major}.{minor}"
