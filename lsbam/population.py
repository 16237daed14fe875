# -*- coding: utf-8 -*-
"""Population records: outdoor-exposure classification, parsing and streaming.

Records look like ``{"id": ..., "lat": ..., "lon": ..., "job": ..., "hobbies": ...}``.
Classification happens once per record at load time; the resulting
probability is carried on the agent arrays and never recomputed per tick.
"""

from __future__ import annotations

# Import dataclass for the classification table rows.
from dataclasses import dataclass

# Import functools for classification caching.
from functools import lru_cache

# Import typing primitives.
from typing import Any, Dict, Iterator, Optional, Tuple

# Import stdlib helpers.
import json
import logging
import math

# Import numpy for synthetic populations.
import numpy as np

logger = logging.getLogger("lsbam.population")

MIN_OUTDOOR_PROB = 0.05
MAX_OUTDOOR_PROB = 0.95
DEFAULT_OUTDOOR_PROB = 0.15
HOBBY_BOOST = 0.12
MAX_HOBBY_BOOST = 0.25
MAX_ABS_LAT = 90.0
MAX_ABS_LON = 180.0


@dataclass(frozen=True)
class ExposureTier:
    """One row of the job classification table."""

    name: str
    probability: float
    keywords: Tuple[str, ...]


# Evaluated top to bottom; the first tier with a matching keyword wins.
JOB_TIERS: Tuple[ExposureTier, ...] = (
    ExposureTier(
        "high_outdoor",
        0.75,
        (
            "farm", "landscap", "construction", "laborer", "street", "parking", "dog walker",
            "police", "fire", "ranger", "guide", "messenger", "delivery", "postal",
            "geologist", "surveyor", "solar", "roof", "environmental",
        ),
    ),
    ExposureTier(
        "medium_outdoor",
        0.45,
        (
            "electrician", "plumber", "carpenter", "welder", "mechanic", "hvac",
            "technician", "driver", "truck", "security", "guard", "bellhop",
            "photographer", "journalist", "real estate", "architect", "planner",
        ),
    ),
    ExposureTier(
        "strict_indoor",
        0.05,
        (
            "software", "developer", "data", "clerk", "teller", "accountant", "analyst",
            "cfo", "ceo", "executive", "admin", "assistant", "receptionist", "attorney",
            "lawyer", "judge", "physician", "surgeon", "nurse", "dentist", "pharmacist",
            "librarian", "teacher", "professor", "scientist", "biologist", "chemist",
            "cashier", "baker", "chef", "cook", "bartender",
        ),
    ),
)

OUTDOOR_HOBBY_KEYWORDS: Tuple[str, ...] = (
    "beach", "fishing", "boating", "swimming", "snorkeling", "scuba", "diving",
    "surfing", "paddle", "kayak", "golf", "tennis", "hiking", "bird",
    "photography", "camp", "cycl", "bike", "ski", "sail", "wildlife",
    "garden", "collecting", "pickleball", "run", "jog", "yoga", "horse",
    "nature", "rv", "climb", "skate", "basket", "soccer", "baseball",
    "football", "astronomy", "restoration",
)


@lru_cache(maxsize=4096)
def job_base_probability(job: str) -> float:
    """Return the base outdoor probability implied by a job title."""
    job_lower = job.lower()
    for tier in JOB_TIERS:
        if any(k in job_lower for k in tier.keywords):
            return tier.probability
    return DEFAULT_OUTDOOR_PROB


def _hobbies_text(hobbies: Any) -> str:
    """Normalize hobbies given as '[A,B]' strings or lists."""
    if hobbies is None:
        return ""
    if isinstance(hobbies, (list, tuple)):
        return ",".join(str(h) for h in hobbies).lower()
    return str(hobbies).lower()


@lru_cache(maxsize=16384)
def _hobby_boost(hobbies_lower: str) -> float:
    if not hobbies_lower:
        return 0.0
    found = sum(1 for k in OUTDOOR_HOBBY_KEYWORDS if k in hobbies_lower)
    return min(MAX_HOBBY_BOOST, found * HOBBY_BOOST)


def outdoor_probability(job: Any, hobbies: Any = None) -> float:
    """Base outdoor probability for a job/hobby pair, clamped to [0.05, 0.95]."""
    prob = job_base_probability(str(job or ""))
    prob += _hobby_boost(_hobbies_text(hobbies))
    return min(MAX_OUTDOOR_PROB, max(MIN_OUTDOOR_PROB, prob))


def _as_coordinate(value: Any) -> Optional[float]:
    """Convert a scalar to a finite float, returning None on failure."""
    if value is None or isinstance(value, bool):
        return None
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    return v if math.isfinite(v) else None


def parse_record(raw: Any) -> Optional[Tuple[Any, float, float, float]]:
    """Validate one input record.

    Returns ``(id, lat, lon, outdoor_probability)`` or None when the record is
    unusable (not an object, no id, non-numeric or off-globe position).
    """
    if not isinstance(raw, dict):
        return None
    agent_id = raw.get("id", raw.get("agentNumber"))
    if agent_id is None:
        return None
    lat = _as_coordinate(raw.get("lat"))
    lon = _as_coordinate(raw.get("lon"))
    if lat is None or lon is None:
        return None
    if abs(lat) > MAX_ABS_LAT or abs(lon) > MAX_ABS_LON:
        return None
    return agent_id, lat, lon, outdoor_probability(raw.get("job", ""), raw.get("hobbies"))


def iter_population_file(path: str) -> Iterator[Dict[str, Any]]:
    """Stream records from a JSON array written one record per line (or JSON Lines).

    Lines that do not parse are skipped; the number skipped is logged once.
    """
    skipped = 0
    yielded = 0
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            text = line.strip()
            if text.startswith("["):
                text = text[1:]
            if text.endswith("]") or text.endswith(","):
                text = text[:-1]
            text = text.strip()
            if not text:
                continue
            try:
                yield json.loads(text)
                yielded += 1
            except json.JSONDecodeError:
                skipped += 1
                logger.debug("Skipping non-JSON population line: %.80s", text)
    if skipped:
        logger.warning("Population file %s: %d unparseable lines skipped (%d records read)", path, skipped, yielded)


SYNTHETIC_JOBS = (
    "Farm Laborer", "Landscaper", "Construction Laborer", "Police Officer", "Messenger",
    "Electrician", "Plumber", "Truck Driver", "Security Guard", "Photographer",
    "Software Developer", "Data Scientist", "Bank Teller", "Surgeon", "Chef",
    "Hair Stylist", "Sales Representative", "Flight Attendant", "Florist", "Tailor",
)
SYNTHETIC_HOBBIES = (
    "Fishing", "Boating", "Surfing", "Golf", "Hiking", "Birdwatching", "Cycling",
    "Gardening", "Running", "Reading", "Painting", "Playing video games",
    "Board games", "Knitting", "Chess", "Cooking",
)


def synthetic_population(
    n: int,
    seed: Optional[int] = None,
    lat_range: Tuple[float, float] = (25.0, 30.0),
    lon_range: Tuple[float, float] = (-87.0, -80.0),
) -> Iterator[Dict[str, Any]]:
    """Yield `n` synthetic records with uniform positions over the region."""
    rng = np.random.default_rng(seed)
    lat = rng.uniform(lat_range[0], lat_range[1], size=int(n))
    lon = rng.uniform(lon_range[0], lon_range[1], size=int(n))
    jobs = rng.integers(0, len(SYNTHETIC_JOBS), size=int(n))
    hob = rng.integers(0, len(SYNTHETIC_HOBBIES), size=(int(n), 2))
    for i in range(int(n)):
        yield {
            "id": str(i + 1),
            "lat": float(lat[i]),
            "lon": float(lon[i]),
            "job": SYNTHETIC_JOBS[int(jobs[i])],
            "hobbies": f"[{SYNTHETIC_HOBBIES[int(hob[i, 0])]},{SYNTHETIC_HOBBIES[int(hob[i, 1])]}]",
        }
