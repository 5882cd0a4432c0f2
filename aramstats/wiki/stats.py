# aramstats/wiki/stats.py
# ============================================================================
# Normalisation des clés de stats du wiki vers le schéma StatModifiers
# Une valeur illisible laisse le champ à sa valeur neutre, sans erreur.
# ============================================================================

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional, Tuple, Union

from aramstats.models.champion import StatModifiers
from aramstats.wiki.lua import lua_number

log = logging.getLogger(__name__)

# Alias historiques → champ canonique (clés déjà normalisées en minuscules)
STAT_ALIASES: dict[str, str] = {
    # dégâts infligés
    "dmg_dealt": "dmg_dealt",
    "damage_dealt": "dmg_dealt",
    "dealt": "dmg_dealt",
    "dmgdealt": "dmg_dealt",
    # dégâts subis
    "dmg_taken": "dmg_taken",
    "damage_taken": "dmg_taken",
    "taken": "dmg_taken",
    "dmgtaken": "dmg_taken",
    # soins / boucliers
    "healing": "healing",
    "heal": "healing",
    "shielding": "shielding",
    "shield": "shielding",
    # ability haste (additif)
    "ability_haste": "ability_haste",
    "abilityhaste": "ability_haste",
    "haste": "ability_haste",
    "ah": "ability_haste",
    # vitesse d'attaque
    "attack_speed": "attack_speed",
    "attackspeed": "attack_speed",
    "as": "attack_speed",
    # énergie
    "energy_regen": "energy_regen",
    "energyregen": "energy_regen",
    "energy": "energy_regen",
    # ténacité
    "tenacity": "tenacity",
    "ten": "tenacity",
}

_SEPARATORS_RE = re.compile(r"[\s\-]+")


def canonical_stat(key: object) -> Optional[str]:
    """Map a raw stat key onto its StatModifiers field name, None if unknown."""
    if not isinstance(key, str):
        return None
    normalized = _SEPARATORS_RE.sub("_", key.strip().lower())
    return STAT_ALIASES.get(normalized)


def map_stats(pairs: Iterable[Tuple[object, Union[str, float, int, None]]]) -> StatModifiers:
    """
    Build a StatModifiers from raw (key, value) pairs.

    Unknown keys are discarded and unparsable values are dropped, so the
    field keeps its neutral value.
    """
    values: dict[str, float] = {}
    for key, raw in pairs:
        field = canonical_stat(key)
        if field is None:
            continue
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            number = float(raw)
        else:
            number = lua_number(raw)
        if number is None:
            log.debug("Dropping unparsable value %r for %s", raw, key)
            continue
        values[field] = number
    return StatModifiers(**values)
