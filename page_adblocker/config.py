from __future__ import annotations

import json
import os
import re
import shutil
import sys
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, List

VERSION = "1.2.0"
APP_NAME = "Page AdBlocker"
APPDATA_DIRNAME = "page-adblocker"
HOME_ENV_VAR = "PAGE_ADBLOCKER_HOME"

_LOAD_WARNINGS: List[str] = []


def _push_load_warning(message: str) -> None:
    _LOAD_WARNINGS.append(message)


def consume_load_warnings() -> List[str]:
    out = list(_LOAD_WARNINGS)
    _LOAD_WARNINGS.clear()
    return out


def get_app_data_dir() -> str:
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return str(Path(override))
    if sys.platform.startswith("win"):
        base = os.environ.get("APPDATA") or str(Path.home() / "AppData" / "Roaming")
    else:
        base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return str(Path(base) / APPDATA_DIRNAME)


APPDATA_DIR = get_app_data_dir()
SETTINGS_FILE = os.path.join(APPDATA_DIR, "settings.json")
LOG_FILE = os.path.join(APPDATA_DIR, "page_adblocker.log")

BROKEN_BACKUP_KEEP_COUNT = 10
BROKEN_BACKUP_MAX_AGE_DAYS = 30
_BROKEN_SUFFIX_RE = re.compile(r"\.broken-(\d{8}-\d{6})$")


def _coerce_bool(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _coerce_int(value: Any, default: int, minimum: int | None = None, maximum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        out = default
    else:
        out = value
    if minimum is not None:
        out = max(out, minimum)
    if maximum is not None:
        out = min(out, maximum)
    return out


def _coerce_str(value: Any, default: str) -> str:
    return value if isinstance(value, str) else default


def _coerce_int_list(
    value: Any,
    default: List[int],
    length: int,
    minimum: int,
    maximum: int,
) -> List[int]:
    if not isinstance(value, list) or len(value) != length:
        return list(default)
    if any(isinstance(x, bool) or not isinstance(x, int) for x in value):
        return list(default)
    return [min(max(x, minimum), maximum) for x in value]


def _backup_broken_json(path: str, label: str, reason: str) -> None:
    if not os.path.exists(path):
        return
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    backup_path = f"{path}.broken-{timestamp}"
    try:
        shutil.copy2(path, backup_path)
        _push_load_warning(f"{label} is corrupted: {reason}. Backup written to {backup_path}; using defaults.")
    except OSError as exc:
        _push_load_warning(f"{label} is corrupted: {reason}. Backup failed ({exc.__class__.__name__}); using defaults.")
    _cleanup_broken_backups(path, label)


def _backup_timestamp(path: Path) -> datetime:
    match = _BROKEN_SUFFIX_RE.search(path.name)
    if match:
        try:
            return datetime.strptime(match.group(1), "%Y%m%d-%H%M%S")
        except ValueError:
            pass
    try:
        return datetime.fromtimestamp(path.stat().st_mtime)
    except OSError:
        return datetime.min


def _cleanup_broken_backups(path: str, label: str) -> None:
    base_path = Path(path)
    parent = base_path.parent
    pattern = f"{base_path.name}.broken-*"
    now = datetime.now()
    max_age = timedelta(days=BROKEN_BACKUP_MAX_AGE_DAYS)

    try:
        backups = list(parent.glob(pattern))
    except OSError as exc:
        _push_load_warning(f"{label} backup cleanup failed ({exc.__class__.__name__}).")
        return

    for backup in backups:
        if now - _backup_timestamp(backup) <= max_age:
            continue
        try:
            backup.unlink()
        except OSError as exc:
            _push_load_warning(f"{label} backup cleanup failed: {backup.name} ({exc.__class__.__name__})")

    keep = sorted(
        [p for p in parent.glob(pattern) if p.exists()],
        key=_backup_timestamp,
        reverse=True,
    )
    for old in keep[BROKEN_BACKUP_KEEP_COUNT:]:
        try:
            old.unlink()
        except OSError as exc:
            _push_load_warning(f"{label} backup cleanup failed: {old.name} ({exc.__class__.__name__})")


def _load_json_object(path: str, label: str) -> dict[str, Any] | None:
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as exc:
        _backup_broken_json(path, label, f"JSON parse failed ({exc.__class__.__name__})")
        return None
    if not isinstance(raw, dict):
        _backup_broken_json(path, label, "top-level value is not an object")
        return None
    return raw


@dataclass
class EngineSettings:
    enabled: bool = True
    rescan_delays_ms: List[int] = field(default_factory=lambda: [500, 1500, 3000])
    periodic_interval_ms: int = 5000
    debounce_ms: int = 150
    restore_on_disable: bool = True
    layout_repair: bool = True
    log_level: str = "INFO"

    @classmethod
    def load(cls, path: str = SETTINGS_FILE) -> "EngineSettings":
        defaults = cls()
        raw = _load_json_object(path, "settings.json")
        if raw is None:
            return defaults
        return cls(
            enabled=_coerce_bool(raw.get("enabled"), defaults.enabled),
            rescan_delays_ms=_coerce_int_list(
                raw.get("rescan_delays_ms"),
                defaults.rescan_delays_ms,
                length=3,
                minimum=50,
                maximum=60000,
            ),
            periodic_interval_ms=_coerce_int(
                raw.get("periodic_interval_ms"),
                defaults.periodic_interval_ms,
                minimum=500,
                maximum=600000,
            ),
            debounce_ms=_coerce_int(raw.get("debounce_ms"), defaults.debounce_ms, minimum=16, maximum=5000),
            restore_on_disable=_coerce_bool(raw.get("restore_on_disable"), defaults.restore_on_disable),
            layout_repair=_coerce_bool(raw.get("layout_repair"), defaults.layout_repair),
            log_level=_coerce_str(raw.get("log_level"), defaults.log_level).upper(),
        )

    def save(self, path: str = SETTINGS_FILE) -> None:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(asdict(self), f, indent=2, ensure_ascii=False)

    @classmethod
    def default_json(cls) -> str:
        return json.dumps(asdict(cls()), indent=2, ensure_ascii=False)


AD_SELECTORS = (
    # Generic ad classes/ids
    '[class*="ad-"]',
    '[class*="-ad"]',
    '[class*="_ad"]',
    '[class*="ads-"]',
    '[class*="-ads"]',
    '[class*="advertisement"]',
    '[class*="advert"]',
    '[id*="ad-"]',
    '[id*="-ad"]',
    '[id*="_ad"]',
    '[id*="ads-"]',
    '[id*="advertisement"]',
    '[id*="advert"]',
    '[class*="sponsored"]',
    '[id*="sponsored"]',
    "[data-ad]",
    "[data-ads]",
    "[data-ad-slot]",
    "[data-ad-client]",
    "[data-google-query-id]",
    # Google
    "ins.adsbygoogle",
    ".adsbygoogle",
    '[id^="google_ads_"]',
    '[id^="div-gpt-ad"]',
    ".GoogleActiveViewElement",
    # Containers
    ".ad-container",
    ".ad-wrapper",
    ".ad-banner",
    ".ad-slot",
    ".ad-unit",
    ".ad-block",
    ".ad-box",
    ".ad-space",
    ".ad-holder",
    ".ad-placement",
    ".ad-label",
    ".ad-leaderboard",
    ".ad-sidebar",
    ".ad-footer",
    ".ad-header",
    ".banner-ad",
    ".top-ad",
    ".bottom-ad",
    ".side-ad",
    ".promo-banner",
    # Ad network frames
    'iframe[src*="doubleclick"]',
    'iframe[src*="googlesyndication"]',
    'iframe[src*="googleadservices"]',
    'iframe[src*="amazon-adsystem"]',
    'iframe[src*="facebook.com/plugins"]',
    'iframe[src*="ad."]',
    'iframe[src*=".ad"]',
    'iframe[id*="google_ads"]',
    ".fb-ad",
    ".twitter-ad",
    # Content recommendation networks
    '[class*="taboola"]',
    '[id*="taboola"]',
    '[class*="outbrain"]',
    '[id*="outbrain"]',
    '[class*="revcontent"]',
    '[class*="mgid"]',
    '[class*="zergnet"]',
    # Intrusive popups
    '[class*="newsletter-popup"]',
    '[class*="subscribe-popup"]',
    '[class*="email-popup"]',
    ".sticky-ad",
    ".floating-ad",
    ".fixed-ad",
    ".video-ad",
    ".preroll-ad",
    ".midroll-ad",
    '[class*="promoted"]',
    '[class*="native-ad"]',
    ".sponsored-content",
    ".paid-content",
    ".partner-content",
)


@dataclass
class SuppressionRules:
    """Compiled-in rule set. Never read from or written to disk."""

    selectors: List[str] = field(default_factory=lambda: list(AD_SELECTORS))
    promo_phrases: List[str] = field(
        default_factory=lambda: [
            "sponsored",
            "advertisement",
            "explore now",
            "shop now",
            "promoted",
            "paid partnership",
            "recommended for you",
            "around the web",
        ]
    )
    cta_phrases: List[str] = field(
        default_factory=lambda: ["EXPLORE NOW", "SHOP NOW", "LEARN MORE", "BUY NOW", "SIGN UP", "GET OFFER", "INSTALL NOW"]
    )
    ad_marker_tokens: List[str] = field(
        default_factory=lambda: ["ad", "ads", "advert", "advertisement", "sponsor", "promo", "banner", "dfp"]
    )
    media_tags: List[str] = field(default_factory=lambda: ["video", "iframe", "embed", "object"])
    embedded_tags: List[str] = field(default_factory=lambda: ["iframe", "embed", "object", "video"])
    loader_tokens: List[str] = field(default_factory=lambda: ["loader", "spinner", "loading"])
    sidebar_tokens: List[str] = field(
        default_factory=lambda: ["sidebar", "side-bar", "rail", "right-col", "widget-area"]
    )
    content_tokens: List[str] = field(default_factory=lambda: ["content", "container", "main", "article"])
    excluded_root_ids: List[str] = field(
        default_factory=lambda: ["zenweb-root", "zenweb-reader-overlay", "zenweb-toolbar"]
    )
    excluded_root_classes: List[str] = field(default_factory=lambda: ["zenweb-reader", "zenweb-ui"])
    protected_tags: List[str] = field(default_factory=lambda: ["html", "head", "body"])

    bottom_margin_px: int = 200
    bottom_min_height_px: int = 50
    bottom_max_height_px: int = 400
    player_min_width_px: int = 200
    player_max_width_px: int = 500
    sidebar_reach_px: int = 400
    sidebar_min_width_px: int = 100
    sidebar_max_width_px: int = 400
    skyscraper_min_height_px: int = 400
    skyscraper_max_width_px: int = 320

    text_min_box_px: int = 10
    cta_max_chars: int = 40
    cta_max_width_px: int = 300
    cta_max_height_px: int = 80
    text_max_width_px: int = 500
    text_max_height_px: int = 600
    text_compact_area_px: int = 120000

    parent_near_zero_height_px: int = 5
    readable_max_width_px: int = 1200
    centered_min_free_px: int = 300
    centered_gutter_px: int = 24

    log_rate_limit_seconds: float = 8.0

    @property
    def ad_marker_tokens_lc(self) -> List[str]:
        return [t.lower() for t in self.ad_marker_tokens]

    @property
    def promo_phrases_lc(self) -> List[str]:
        return [p.lower() for p in self.promo_phrases]

    @classmethod
    def default_json(cls) -> str:
        return json.dumps(asdict(cls()), indent=2, ensure_ascii=False)


def ensure_runtime_files() -> None:
    os.makedirs(APPDATA_DIR, exist_ok=True)
    if not os.path.exists(SETTINGS_FILE):
        with open(SETTINGS_FILE, "w", encoding="utf-8") as f:
            f.write(EngineSettings.default_json())
    if not os.path.exists(LOG_FILE):
        with open(LOG_FILE, "a", encoding="utf-8"):
            pass


__all__ = [
    "VERSION",
    "APP_NAME",
    "APPDATA_DIRNAME",
    "APPDATA_DIR",
    "SETTINGS_FILE",
    "LOG_FILE",
    "AD_SELECTORS",
    "EngineSettings",
    "SuppressionRules",
    "get_app_data_dir",
    "ensure_runtime_files",
    "consume_load_warnings",
]
