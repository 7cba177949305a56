"""Quality profiles for transcoded renditions.

Profiles are immutable and parsed once from configuration; the orchestrator
receives the resulting tuple at construction.
"""

import re
from dataclasses import dataclass

_PROFILE_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_BITRATE_RE = re.compile(r"^(\d+)([kKmM]?)$")


@dataclass(frozen=True)
class QualityProfile:
    """A named target height/bitrate pair."""

    name: str
    target_height: int
    target_bitrate_kbps: int

    @property
    def ffmpeg_bitrate(self) -> str:
        """Bitrate in FFmpeg notation, e.g. ``4000k``."""
        return f"{self.target_bitrate_kbps}k"


DEFAULT_QUALITY_PROFILES: tuple[QualityProfile, ...] = (
    QualityProfile("1080p", 1080, 4000),
    QualityProfile("720p", 720, 2500),
    QualityProfile("480p", 480, 1000),
)


def parse_bitrate(value: str) -> int:
    """Parse ``4000k`` / ``4M`` / ``4000`` into kbps."""
    match = _BITRATE_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid bitrate '{value}'")
    amount, unit = int(match.group(1)), match.group(2).lower()
    kbps = amount * 1000 if unit == "m" else amount
    if kbps <= 0:
        raise ValueError(f"Bitrate must be positive, got '{value}'")
    return kbps


def parse_quality_profiles(value: str) -> tuple[QualityProfile, ...]:
    """Parse ``"1080p:1080:4000k,720p:720:2500k"`` into profiles.

    Order is preserved. Names must be unique path-safe tokens; heights and
    bitrates must be positive; at least one profile is required.

    Raises:
        ValueError: If the configuration string is malformed
    """
    profiles: list[QualityProfile] = []
    seen: set[str] = set()

    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        parts = [p.strip() for p in entry.split(":")]
        if len(parts) != 3:
            raise ValueError(f"Invalid quality profile '{entry}', expected name:height:bitrate")
        name, height_raw, bitrate_raw = parts

        if not _PROFILE_NAME_RE.match(name):
            raise ValueError(f"Invalid quality profile name '{name}'")
        if name in seen:
            raise ValueError(f"Duplicate quality profile '{name}'")
        try:
            height = int(height_raw)
        except ValueError:
            raise ValueError(f"Invalid height '{height_raw}' for profile '{name}'") from None
        if height <= 0:
            raise ValueError(f"Height must be positive for profile '{name}'")

        profiles.append(QualityProfile(name, height, parse_bitrate(bitrate_raw)))
        seen.add(name)

    if not profiles:
        raise ValueError("At least one quality profile is required")
    return tuple(profiles)
