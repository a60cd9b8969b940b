"""
Reference data provider: clients, sites, agents, supervisors, learners, SETA bodies,
class types/subjects, exam types, note types and public holidays.

Each list has a built-in default. When REFERENCE_DATA_DIR is set, a file named
<list>.json in that directory replaces the default (e.g. clients.json,
public_holidays_2026.json). Lists are loaded once and cached; they are read-only.
"""

import json
import logging
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import status

from app.core.config import settings
from app.core.exceptions import ServiceError

from .schemas import PublicHoliday, ReferenceItem, SiteItem

logger = logging.getLogger(__name__)


DEFAULT_CLIENTS = [
    {"id": 1, "name": "Sasol Limited"},
    {"id": 2, "name": "Standard Bank Group"},
    {"id": 3, "name": "Shoprite Holdings"},
    {"id": 4, "name": "MTN Group"},
    {"id": 5, "name": "Naspers"},
    {"id": 6, "name": "Vodacom Group"},
    {"id": 7, "name": "Woolworths Holdings"},
    {"id": 8, "name": "FirstRand"},
    {"id": 9, "name": "Bidvest Group"},
    {"id": 10, "name": "Sanlam"},
    {"id": 11, "name": "Aspen Pharmacare"},
    {"id": 12, "name": "Nedbank Group"},
    {"id": 13, "name": "Tiger Brands"},
    {"id": 14, "name": "Barloworld"},
    {"id": 15, "name": "Multichoice Group"},
]

# Keyed by client id (as text, the way it reads back from a JSON file)
DEFAULT_SITES = {
    "11": [
        {"id": "11_1", "name": "Aspen Pharmacare - Head Office", "address": "100 Pharma Rd, Durban, 4001"},
        {"id": "11_2", "name": "Aspen Pharmacare - Production Unit", "address": "101 Pharma Rd, Durban, 4001"},
        {"id": "11_3", "name": "Aspen Pharmacare - Research Centre", "address": "102 Pharma Rd, Durban, 4001"},
    ],
    "14": [
        {"id": "14_1", "name": "Barloworld - Northern Branch", "address": "10 Northern Ave, Johannesburg, 2001"},
        {"id": "14_2", "name": "Barloworld - Southern Branch", "address": "20 Southern St, Johannesburg, 2002"},
        {"id": "14_3", "name": "Barloworld - Central Branch", "address": "30 Central Blvd, Johannesburg, 2003"},
    ],
}

DEFAULT_AGENTS = [
    {"id": 1, "name": "Michael M. van der Berg"},
    {"id": 2, "name": "Thandi T. Nkosi"},
    {"id": 3, "name": "Rajesh R. Patel"},
    {"id": 4, "name": "Lerato L. Moloi"},
    {"id": 5, "name": "Johannes J. Pretorius"},
    {"id": 6, "name": "Nomvula N. Dlamini"},
    {"id": 7, "name": "David D. O'Connor"},
    {"id": 8, "name": "Zanele Z. Mthembu"},
    {"id": 9, "name": "Pieter P. van Zyl"},
    {"id": 10, "name": "Fatima F. Ismail"},
]

DEFAULT_SUPERVISORS = [
    {"id": 1, "name": "Ethan J. Williams"},
    {"id": 2, "name": "Aisha K. Mohamed"},
    {"id": 3, "name": "Carlos M. Rodriguez"},
    {"id": 4, "name": "Emily R. Thompson"},
    {"id": 5, "name": "Samuel B. Johnson"},
]

DEFAULT_LEARNERS = [
    {"id": 1, "name": "John J.M. Smith"},
    {"id": 2, "name": "Nosipho N. Dlamini"},
    {"id": 3, "name": "Ahmed A. Patel"},
    {"id": 4, "name": "Lerato L. Moloi"},
    {"id": 5, "name": "Pieter P. van der Merwe"},
]

DEFAULT_SETAS = [
    {"id": "HWSETA", "name": "Health and Welfare SETA"},
    {"id": "MERSETA", "name": "Manufacturing, Engineering and Related Services SETA"},
    {"id": "BANKSETA", "name": "Banking SETA"},
    {"id": "INSETA", "name": "Insurance SETA"},
    {"id": "FASSET", "name": "Finance and Accounting Services SETA"},
]

DEFAULT_CLASS_TYPES = [
    {"id": "employed", "name": "Employed"},
    {"id": "community", "name": "Community"},
    {"id": "safety", "name": "Safety Training"},
    {"id": "skills", "name": "Skills Development"},
]

DEFAULT_CLASS_SUBJECTS = {
    "employed": ["Basic Computer Skills", "Customer Service", "Leadership Development", "Project Management"],
    "community": ["Adult Basic Education", "Life Skills", "Entrepreneurship", "Financial Literacy"],
    "safety": ["First Aid Level 1", "First Aid Level 2", "Fire Safety", "Occupational Health and Safety"],
    "skills": ["Welding", "Electrical Installation", "Plumbing", "Carpentry"],
}

DEFAULT_EXAM_TYPES = ["Written", "Practical", "Oral", "Portfolio of Evidence", "Competency Assessment"]

DEFAULT_CLASS_NOTE_TYPES = [
    "Venue Confirmed",
    "Materials Ordered",
    "Learners Contacted",
    "Assessment Scheduled",
    "Certificates Pending",
]

DEFAULT_PUBLIC_HOLIDAYS = {
    2025: [
        {"date": "2025-01-01", "name": "New Year's Day"},
        {"date": "2025-03-21", "name": "Human Rights Day"},
        {"date": "2025-04-18", "name": "Good Friday"},
        {"date": "2025-04-21", "name": "Family Day"},
        {"date": "2025-04-27", "name": "Freedom Day"},
        {"date": "2025-04-28", "name": "Public holiday (Freedom Day observed)"},
        {"date": "2025-05-01", "name": "Workers' Day"},
        {"date": "2025-06-16", "name": "Youth Day"},
        {"date": "2025-08-09", "name": "National Women's Day"},
        {"date": "2025-09-24", "name": "Heritage Day"},
        {"date": "2025-12-16", "name": "Day of Reconciliation"},
        {"date": "2025-12-25", "name": "Christmas Day"},
        {"date": "2025-12-26", "name": "Day of Goodwill"},
    ],
    2026: [
        {"date": "2026-01-01", "name": "New Year's Day"},
        {"date": "2026-03-21", "name": "Human Rights Day"},
        {"date": "2026-04-03", "name": "Good Friday"},
        {"date": "2026-04-06", "name": "Family Day"},
        {"date": "2026-04-27", "name": "Freedom Day"},
        {"date": "2026-05-01", "name": "Workers' Day"},
        {"date": "2026-06-16", "name": "Youth Day"},
        {"date": "2026-08-09", "name": "National Women's Day"},
        {"date": "2026-08-10", "name": "Public holiday (National Women's Day observed)"},
        {"date": "2026-09-24", "name": "Heritage Day"},
        {"date": "2026-12-16", "name": "Day of Reconciliation"},
        {"date": "2026-12-25", "name": "Christmas Day"},
        {"date": "2026-12-26", "name": "Day of Goodwill"},
    ],
}

DEFAULTS: Dict[str, Any] = {
    "clients": DEFAULT_CLIENTS,
    "sites": DEFAULT_SITES,
    "agents": DEFAULT_AGENTS,
    "supervisors": DEFAULT_SUPERVISORS,
    "learners": DEFAULT_LEARNERS,
    "setas": DEFAULT_SETAS,
    "class_types": DEFAULT_CLASS_TYPES,
    "class_subjects": DEFAULT_CLASS_SUBJECTS,
    "exam_types": DEFAULT_EXAM_TYPES,
    "class_notes_options": DEFAULT_CLASS_NOTE_TYPES,
}


@lru_cache(maxsize=None)
def _load(name: str) -> Any:
    """Contents of <REFERENCE_DATA_DIR>/<name>.json if present, else the built-in default."""
    if name.startswith("public_holidays_"):
        default: Any = DEFAULT_PUBLIC_HOLIDAYS.get(int(name.rsplit("_", 1)[1]), [])
    else:
        default = DEFAULTS[name]

    if not settings.reference_data_dir:
        return default
    path = Path(settings.reference_data_dir) / f"{name}.json"
    if not path.is_file():
        return default
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.error("Could not read reference data file %s: %s", path, exc)
        raise ServiceError(f"Reference data '{name}' is unavailable", status.HTTP_500_INTERNAL_SERVER_ERROR) from exc
    logger.info("Loaded reference data %s from %s", name, path)
    return data


def clear_cache() -> None:
    """Forget loaded lists so the next call re-reads REFERENCE_DATA_DIR."""
    _load.cache_clear()


def _items(name: str) -> List[ReferenceItem]:
    return [ReferenceItem(**item) for item in _load(name)]


def list_clients() -> List[ReferenceItem]:
    return _items("clients")


def list_sites(client_id: Optional[int] = None) -> List[SiteItem]:
    sites: List[SiteItem] = []
    for owner, entries in _load("sites").items():
        if client_id is not None and int(owner) != client_id:
            continue
        sites.extend(SiteItem(client_id=int(owner), **entry) for entry in entries)
    return sites


def list_agents() -> List[ReferenceItem]:
    return _items("agents")


def list_supervisors() -> List[ReferenceItem]:
    return _items("supervisors")


def list_learners() -> List[ReferenceItem]:
    return _items("learners")


def list_seta_bodies() -> List[ReferenceItem]:
    return _items("setas")


def list_class_types() -> List[ReferenceItem]:
    return _items("class_types")


def list_class_subjects(class_type: Optional[str] = None) -> Dict[str, List[str]]:
    """Subjects grouped by class type; only the given type's group when class_type is set."""
    subjects: Dict[str, List[str]] = _load("class_subjects")
    if class_type is None:
        return {name: list(items) for name, items in subjects.items()}
    return {class_type: list(subjects.get(class_type, []))}


def list_exam_types() -> List[str]:
    return list(_load("exam_types"))


def list_class_note_types() -> List[str]:
    return list(_load("class_notes_options"))


def list_public_holidays(year: Optional[int] = None) -> List[PublicHoliday]:
    year = year or date.today().year
    return [PublicHoliday(**h) for h in _load(f"public_holidays_{year}")]
