"""
Static definitions for art pieces, hoods, and teams.
All catalog data lives under data/catalogs/<catalog_id>/: art_points.json, hoods.json,
teams.json, and optional manifest.json (display_name, default_hood, sizes).
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DATA_DIR = Path(__file__).parent.parent / "data"
CATALOGS_DIR = DATA_DIR / "catalogs"

# Size categories: sticker (25), small (50), medium (100), large (200)
DEFAULT_SIZES = {"sticker": 25, "small": 50, "medium": 100, "large": 200}
# Unknown size tier
FALLBACK_POINTS = 100

STATUS_ACTIVE = "active"
STATUS_GHOST = "ghost"  # removed / painted over

NEUTRAL_COLOR = "#495057"


def _default_catalog_id() -> str:
    """Single place for default: streetart.config.DEFAULT_CATALOG_ID."""
    from streetart.config import DEFAULT_CATALOG_ID
    return DEFAULT_CATALOG_ID


def _catalog_dir(catalog_id: str) -> Path:
    return CATALOGS_DIR / catalog_id


@dataclass(frozen=True)
class ArtDefinition:
    """Immutable properties of a street art piece."""
    id: str
    name: str
    location: tuple[float, float]  # (lat, lng)
    size: str  # "sticker", "small", "medium", "large"
    status: str = STATUS_ACTIVE  # "active" or "ghost"
    area: str = ""  # neighborhood label, e.g. "Vysočany"
    hood: str = ""  # hood id, e.g. "vysocany"
    mhd: Optional[str] = None  # nearby public transport ("tram12", "metroB")


@dataclass(frozen=True)
class HoodDefinition:
    """A map region the player can switch between."""
    id: str
    name: str
    center: tuple[float, float]
    zoom: int = 15
    description: str = ""


@dataclass(frozen=True)
class TeamDefinition:
    id: str
    display_name: str
    hex: str
    rgb: tuple[float, float, float] = (0.0, 0.0, 0.0)


def size_points(size: str, sizes: Optional[dict[str, int]] = None) -> int:
    """Point value of a size tier; unknown tiers are worth FALLBACK_POINTS."""
    return (sizes if sizes is not None else DEFAULT_SIZES).get(size, FALLBACK_POINTS)


@dataclass
class Catalog:
    """Everything loaded from one catalog directory."""
    id: str
    display_name: str
    art: dict[str, ArtDefinition]  # insertion order = AR target order
    hoods: dict[str, HoodDefinition]
    teams: dict[str, TeamDefinition]
    sizes: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_SIZES))
    default_hood: Optional[str] = None

    def get_art(self, art_id: str) -> Optional[ArtDefinition]:
        return self.art.get(art_id)

    def point_value(self, size: str) -> int:
        """Base points for a size tier in this catalog."""
        return size_points(size, self.sizes)

    def team_color(self, team: Optional[str]) -> str:
        team_def = self.teams.get(team) if team else None
        return team_def.hex if team_def else NEUTRAL_COLOR

    @property
    def target_index(self) -> dict[int, str]:
        """AR target index -> art id (scanner targets are compiled in catalog order)."""
        return {idx: art_id for idx, art_id in enumerate(self.art)}


def list_catalogs() -> list[dict]:
    """Return [{ id, display_name }, ...] for all catalogs (subdirs of data/catalogs/ with art_points.json)."""
    out = []
    if not CATALOGS_DIR.exists():
        return out
    for d in sorted(CATALOGS_DIR.iterdir()):
        if not d.is_dir() or not (d / "art_points.json").exists():
            continue
        catalog_id = d.name
        manifest = _load_manifest(d)
        out.append({
            "id": manifest.get("id", catalog_id),
            "display_name": manifest.get("display_name", catalog_id),
        })
    return out


def _load_manifest(catalog_dir: Path) -> dict:
    manifest_path = catalog_dir / "manifest.json"
    if not manifest_path.exists():
        return {}
    try:
        with open(manifest_path, "r", encoding="utf-8") as f:
            m = json.load(f)
        return m if isinstance(m, dict) else {}
    except (json.JSONDecodeError, OSError):
        return {}


def _load_json(path: Path, default):
    if not path.exists():
        return default
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _art_from_dict(data: dict) -> ArtDefinition:
    lat, lng = data.get("location") or (0.0, 0.0)
    return ArtDefinition(
        id=str(data["id"]),
        name=str(data.get("name") or data["id"]),
        location=(float(lat), float(lng)),
        size=str(data.get("size") or "medium"),
        status=str(data.get("status") or STATUS_ACTIVE),
        area=str(data.get("area") or ""),
        hood=str(data.get("hood") or ""),
        mhd=data.get("mhd"),
    )


def load_catalog(catalog_id: str | None = None) -> Catalog:
    """Load a catalog by id. Raises FileNotFoundError if the directory or art_points.json is missing."""
    if catalog_id is None:
        catalog_id = _default_catalog_id()
    catalog_dir = _catalog_dir(catalog_id)
    art_path = catalog_dir / "art_points.json"
    if not catalog_dir.is_dir() or not art_path.exists():
        raise FileNotFoundError(f"Catalog not found: {catalog_id}")

    art_list = _load_json(art_path, [])
    art = {}
    for entry in art_list:
        a = _art_from_dict(entry)
        art[a.id] = a

    hoods = {
        hid: HoodDefinition(
            id=hid,
            name=h.get("name", hid),
            center=tuple(h.get("center") or (0.0, 0.0)),
            zoom=int(h.get("zoom", 15)),
            description=h.get("description", ""),
        )
        for hid, h in _load_json(catalog_dir / "hoods.json", {}).items()
    }
    teams = {
        tid: TeamDefinition(
            id=tid,
            display_name=t.get("display_name", tid),
            hex=t.get("hex", NEUTRAL_COLOR),
            rgb=tuple(t.get("rgb") or (0.0, 0.0, 0.0)),
        )
        for tid, t in _load_json(catalog_dir / "teams.json", {}).items()
    }

    manifest = _load_manifest(catalog_dir)
    sizes = dict(DEFAULT_SIZES)
    for size, pts in (manifest.get("sizes") or {}).items():
        try:
            sizes[str(size)] = int(pts)
        except (TypeError, ValueError):
            pass

    return Catalog(
        id=manifest.get("id", catalog_id),
        display_name=manifest.get("display_name", catalog_id),
        art=art,
        hoods=hoods,
        teams=teams,
        sizes=sizes,
        default_hood=manifest.get("default_hood") or next(iter(hoods), None),
    )
