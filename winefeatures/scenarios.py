# winefeatures/scenarios.py
import json
import os
from typing import Any, Dict, List, Optional

from .config import GRAPE_PROFILES
from .models import GameCalendar, WineBatch, WineCharacteristics

SCENARIO_DIR = "data/scenarios"

# Schedules use week offsets from the scenario start (offset 0 = start week).
# Harvest context gets season/week filled in from the calendar at run time.
SCENARIO_DEFINITIONS = [
    {
        "id": "V-01",
        "name": "Classic Vintage",
        "seed": 42,
        "description": "Ripe fruit picked mid-Fall, careful cellar work",
        "start": {"season": "Summer", "week": 1, "year": 2024},
        "weeks": 48,
        "batches": [
            {"id": "B-01", "vineyard_id": "Hillside", "grape": "Chardonnay",
             "quantity": 800, "born_quality": 0.65},
            {"id": "B-02", "vineyard_id": "Riverbend", "grape": "Tempranillo",
             "quantity": 1200, "born_quality": 0.55},
        ],
        "schedule": [
            {"offset": 15, "batch": "B-01", "event": "harvest", "context": {"ripeness": 0.75}},
            {"offset": 15, "batch": "B-02", "event": "harvest", "context": {"ripeness": 0.70}},
            {"offset": 16, "batch": "B-01", "event": "crushing",
             "context": {"method": "Pneumatic Press", "pressing_intensity": 0.4, "destemming": True}},
            {"offset": 16, "batch": "B-02", "event": "crushing",
             "context": {"method": "Pneumatic Press", "pressing_intensity": 0.5, "destemming": True}},
            {"offset": 17, "batch": "B-01", "event": "fermentation",
             "context": {"method": "Temperature Controlled", "temperature": "Cool"}},
            {"offset": 17, "batch": "B-02", "event": "fermentation",
             "context": {"method": "Basic", "temperature": "Ambient"}},
            {"offset": 24, "batch": "B-01", "event": "bottling", "context": {}},
            {"offset": 26, "batch": "B-02", "event": "bottling", "context": {}},
        ],
        "sales": [
            {"batch": "B-01", "volume": 300, "value": 6000.0},
            {"batch": "B-02", "volume": 500, "value": 9000.0},
        ],
    },
    {
        "id": "V-02",
        "name": "Rushed Harvest",
        "seed": 101,
        "description": "Underripe Sauvignon Blanc, hard pressing, cold red fermentation",
        "start": {"season": "Summer", "week": 1, "year": 2024},
        "weeks": 36,
        "batches": [
            {"id": "B-01", "vineyard_id": "Flatlands", "grape": "Sauvignon Blanc",
             "quantity": 1500, "born_quality": 0.45},
            {"id": "B-02", "vineyard_id": "Flatlands", "grape": "Pinot Noir",
             "quantity": 900, "born_quality": 0.60},
        ],
        "schedule": [
            {"offset": 10, "batch": "B-01", "event": "harvest", "context": {"ripeness": 0.30}},
            {"offset": 10, "batch": "B-02", "event": "harvest", "context": {"ripeness": 0.45}},
            {"offset": 13, "batch": "B-01", "event": "crushing",
             "context": {"method": "Mechanical Press", "pressing_intensity": 0.9, "destemming": False}},
            {"offset": 13, "batch": "B-02", "event": "crushing",
             "context": {"method": "Mechanical Press", "pressing_intensity": 0.8, "destemming": False}},
            {"offset": 15, "batch": "B-01", "event": "fermentation",
             "context": {"method": "Basic", "temperature": "Warm"}},
            {"offset": 15, "batch": "B-02", "event": "fermentation",
             "context": {"method": "Extended Maceration", "temperature": "Cool"}},
            {"offset": 20, "batch": "B-01", "event": "bottling", "context": {}},
            {"offset": 22, "batch": "B-02", "event": "bottling", "context": {}},
        ],
        "sales": [
            {"batch": "B-01", "volume": 1000, "value": 8000.0},
            {"batch": "B-02", "volume": 400, "value": 7000.0},
        ],
    },
    {
        "id": "V-03",
        "name": "Botrytis Gamble",
        "seed": 202,
        "description": "Grapes left hanging into Winter: noble rot, or grey rot",
        "start": {"season": "Summer", "week": 1, "year": 2024},
        "weeks": 60,
        "batches": [
            {"id": "B-01", "vineyard_id": "Lakeside", "grape": "Chardonnay",
             "quantity": 600, "born_quality": 0.70},
            {"id": "B-02", "vineyard_id": "Lakeside", "grape": "Primitivo",
             "quantity": 700, "born_quality": 0.60},
        ],
        "schedule": [
            {"offset": 26, "batch": "B-01", "event": "harvest", "context": {"ripeness": 0.95}},
            {"offset": 22, "batch": "B-02", "event": "harvest", "context": {"ripeness": 0.90}},
            {"offset": 27, "batch": "B-01", "event": "crushing",
             "context": {"method": "Hand Press", "pressing_intensity": 0.3, "destemming": True}},
            {"offset": 23, "batch": "B-02", "event": "crushing",
             "context": {"method": "Hand Press", "pressing_intensity": 0.4, "destemming": True}},
            {"offset": 28, "batch": "B-01", "event": "fermentation",
             "context": {"method": "Temperature Controlled", "temperature": "Cool"}},
            {"offset": 24, "batch": "B-02", "event": "fermentation",
             "context": {"method": "Basic", "temperature": "Warm"}},
            {"offset": 36, "batch": "B-01", "event": "bottling", "context": {}},
            {"offset": 32, "batch": "B-02", "event": "bottling", "context": {}},
        ],
        "sales": [
            {"batch": "B-01", "volume": 200, "value": 9000.0},
            {"batch": "B-02", "volume": 350, "value": 7500.0},
        ],
    },
]

SCENARIO_INDEX = {s_def['id']: s_def for s_def in SCENARIO_DEFINITIONS}


def get_scenario(scenario_id: str) -> Dict[str, Any]:
    try:
        return SCENARIO_INDEX[scenario_id]
    except KeyError:
        raise KeyError(f"Unknown scenario '{scenario_id}'. "
                       f"Available: {', '.join(SCENARIO_INDEX)}") from None


def start_calendar(scenario: Dict[str, Any]) -> GameCalendar:
    return GameCalendar(**scenario['start'])


def build_batch(entry: Dict[str, Any]) -> WineBatch:
    """Batch in the grapes state with the variety's traits filled in."""
    profile = GRAPE_PROFILES.get(entry['grape'], {})
    return WineBatch(
        id=entry['id'],
        vineyard_id=entry['vineyard_id'],
        grape=entry['grape'],
        quantity=entry.get('quantity', 0.0),
        born_quality=entry.get('born_quality', 0.5),
        fragile=profile.get('fragile', 0.0),
        prone_to_oxidation=profile.get('prone_to_oxidation', 0.0),
        grape_color=profile.get('grape_color', 'red'),
        characteristics=WineCharacteristics(**profile.get('characteristics', {})),
    )


def build_batches(scenario: Dict[str, Any]) -> List[WineBatch]:
    return [build_batch(entry) for entry in scenario['batches']]


def events_at(scenario: Dict[str, Any], offset: int) -> List[Dict[str, Any]]:
    return [e for e in scenario['schedule'] if e['offset'] == offset]


def ensure_dir(path: str = SCENARIO_DIR):
    if not os.path.exists(path):
        os.makedirs(path)


def generate_scenarios(path: Optional[str] = None) -> List[str]:
    """Export scenario definitions as JSON, one file per scenario."""
    path = path or SCENARIO_DIR
    ensure_dir(path)
    print(f"Generating {len(SCENARIO_DEFINITIONS)} scenarios in {path}...")

    written = []
    for s_def in SCENARIO_DEFINITIONS:
        fname = os.path.join(path, f"{s_def['id']}.json")
        with open(fname, 'w') as f:
            json.dump(s_def, f, indent=2)
        written.append(fname)

    print("Done.")
    return written


if __name__ == "__main__":
    generate_scenarios()
