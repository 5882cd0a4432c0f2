# aramstats/models/champion.py
# ============================================================================
# Modèle de données : modificateurs par mode, champions, résultat de fetch
# Les champs absents prennent leur valeur neutre (1.0, ou 0 pour l'AH)
# ============================================================================

from __future__ import annotations

import time
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

# Mode par défaut + modes rotatifs présents dans Module:ChampionData
GAME_MODES: tuple[str, ...] = ("aram", "urf", "usb", "ofa", "nb", "ar")
DEFAULT_MODE = "aram"

# Champs additifs : 0 = pas de modification (les autres sont multiplicatifs)
ADDITIVE_FIELDS = frozenset({"ability_haste"})


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class StatModifiers:
    """Closed set of game-mode balance modifiers."""

    dmg_dealt: float = 1.0
    dmg_taken: float = 1.0
    healing: float = 1.0
    shielding: float = 1.0
    ability_haste: float = 0.0
    attack_speed: float = 1.0
    energy_regen: float = 1.0
    tenacity: float = 1.0

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def baseline(cls, name: str) -> float:
        """Neutral value of a field."""
        return 0.0 if name in ADDITIVE_FIELDS else 1.0

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "StatModifiers":
        """Build from a mapping; unknown keys are ignored, missing keys stay neutral."""
        if not data:
            return cls()
        known = set(cls.field_names())
        values = {}
        for key, value in data.items():
            if key not in known or value is None:
                continue
            try:
                values[key] = float(value)
            except (TypeError, ValueError):
                continue
        return cls(**values)

    def to_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in self.field_names()}

    def modified_fields(self) -> Dict[str, float]:
        """Fields that differ from their neutral value."""
        return {
            name: value
            for name, value in self.to_dict().items()
            if value != self.baseline(name)
        }

    def is_modified(self) -> bool:
        return bool(self.modified_fields())


@dataclass
class ChampionRecord:
    """Un champion extrait du wiki. `id` et `name` sont obligatoires."""

    id: int
    name: str                                           # apiname, ex. "MonkeyKing"
    modes: Dict[str, StatModifiers] = field(default_factory=dict)
    title: Optional[str] = None
    roles: List[str] = field(default_factory=list)
    skills: Dict[str, List[str]] = field(default_factory=dict)
    base_stats: Dict[str, float] = field(default_factory=dict)
    last_changed: Optional[str] = None                  # ["changes"], ex. "V14.3"
    display_name: Optional[str] = None                  # rempli par l'appelant

    def __post_init__(self):
        if self.id is None or self.id == "" or not self.name:
            raise ValueError("ChampionRecord requires both id and name")

    @property
    def key(self) -> str:
        """Key of the record in a FetchResult mapping."""
        return str(self.id)

    def stats_for(self, mode: str = DEFAULT_MODE) -> StatModifiers:
        """Modifiers for a game mode, neutral when the wiki has no block for it."""
        return self.modes.get(mode) or StatModifiers()

    def to_dict(self) -> Dict[str, Any]:
        # `aram` reste au premier niveau pour la compatibilité avec l'UI
        return {
            "id": self.id,
            "name": self.name,
            "displayName": self.display_name or self.name,
            "aram": self.stats_for(DEFAULT_MODE).to_dict(),
            "gameModes": {mode: stats.to_dict() for mode, stats in self.modes.items()},
            "title": self.title,
            "roles": list(self.roles),
            "skills": {k: list(v) for k, v in self.skills.items()},
            "baseStats": dict(self.base_stats),
            "changes": self.last_changed,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], key: Optional[str] = None) -> "ChampionRecord":
        """Inverse of to_dict(); also accepts the legacy `{name, aram}` shape."""
        modes = {
            mode: StatModifiers.from_dict(stats)
            for mode, stats in (data.get("gameModes") or {}).items()
        }
        if DEFAULT_MODE not in modes and data.get("aram"):
            aram = dict(data["aram"])
            # Ancien format (sans gameModes) : AH neutre stockée à 1
            if "gameModes" not in data and aram.get("ability_haste") == 1:
                aram["ability_haste"] = 0.0
            modes[DEFAULT_MODE] = StatModifiers.from_dict(aram)
        raw_id = data.get("id", key)
        return cls(
            id=int(raw_id) if raw_id is not None and str(raw_id).isdigit() else raw_id,
            name=data.get("name"),
            modes=modes,
            title=data.get("title"),
            roles=list(data.get("roles") or []),
            skills={k: list(v) for k, v in (data.get("skills") or {}).items()},
            base_stats=dict(data.get("baseStats") or {}),
            last_changed=data.get("changes"),
            display_name=data.get("displayName"),
        )


class Origin(str, Enum):
    """Where a FetchResult came from."""

    FRESH = "fresh"
    CACHE = "cache"
    STALE_FALLBACK = "stale-fallback"


class AcquisitionState(str, Enum):
    COLD = "cold"
    FRESH = "fresh"
    STALE = "stale"
    REFRESHING = "refreshing"
    ERROR = "error"


@dataclass
class FetchResult:
    """
    Un jeu de données complet. `fetched_at` est l'heure du fetch en ms epoch,
    PAS la date réelle de sortie du patch (limitation connue).
    """

    records: Dict[str, ChampionRecord]
    fetched_at: int
    source_version: Optional[str] = None
    origin: Origin = Origin.FRESH

    def __len__(self) -> int:
        return len(self.records)

    def age_ms(self, now: Optional[int] = None) -> int:
        return (now if now is not None else now_ms()) - self.fetched_at

    def is_stale(self, max_age_ms: int, now: Optional[int] = None) -> bool:
        return self.age_ms(now) > max_age_ms

    def with_origin(self, origin: Origin) -> "FetchResult":
        return replace(self, origin=origin)

    def to_content(self) -> Dict[str, Any]:
        """Durable form stored under the reserved record id."""
        return {
            "data": {key: record.to_dict() for key, record in self.records.items()},
            "patchVersion": self.source_version,
            "timestamp": self.fetched_at,
        }

    @classmethod
    def from_content(cls, content: Mapping[str, Any], origin: Origin = Origin.CACHE) -> "FetchResult":
        records = {}
        for key, raw in (content.get("data") or {}).items():
            try:
                record = ChampionRecord.from_dict(raw, key=key)
            except (TypeError, ValueError):
                continue
            records[record.key] = record
        return cls(
            records=records,
            fetched_at=int(content.get("timestamp") or 0),
            source_version=content.get("patchVersion"),
            origin=origin,
        )


@dataclass(frozen=True)
class RefreshReport:
    """What the operator-facing refresh trigger reports back."""

    records_count: int
    source_version: Optional[str]
    timestamp: int
    origin: Origin

    @classmethod
    def from_result(cls, result: FetchResult) -> "RefreshReport":
        return cls(
            records_count=len(result.records),
            source_version=result.source_version,
            timestamp=result.fetched_at,
            origin=result.origin,
        )
