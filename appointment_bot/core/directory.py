"""Static directory of specialties, doctors and bookable time slots.

The tables are fixed at import time and never mutated. Lookups compare names
through ``classifiers.normalize`` so case and spacing differences in the
inbound message do not matter.
"""
from types import MappingProxyType
from typing import Dict, List, Optional, Tuple

from appointment_bot.core.classifiers import normalize, normalize_time_slot
from appointment_bot.core.models import Doctor

SPECIALTIES: Tuple[str, ...] = (
    'Cardiology', 'Neurology', 'Pulmonology', 'Gastroenterology',
    'Nephrology', 'Endocrinology', 'Oncology', 'Hematology',
    'Dermatology', 'Psychiatry',
)

DOCTORS = MappingProxyType({
    'Cardiology': (
        Doctor(name='Dr. Somasekar', email='somasekar@example.com'),
        Doctor(name='Dr. Poovarasan', email='poovarasan@example.com'),
    ),
    'Neurology': (
        Doctor(name='Dr. Anjali Sharma', email='anjali.sharma@example.com'),
        Doctor(name='Dr. Vikram Patel', email='vikram.patel@example.com'),
    ),
    'Pulmonology': (
        Doctor(name='Dr. Priya Menon', email='priya.menon@example.com'),
        Doctor(name='Dr. Sanjay Gupta', email='sanjay.gupta@example.com'),
    ),
    'Gastroenterology': (
        Doctor(name='Dr. Rajesh Nair', email='rajesh.nair@example.com'),
        Doctor(name='Dr. Meena Iyer', email='meena.iyer@example.com'),
    ),
    'Nephrology': (
        Doctor(name='Dr. Arjun Reddy', email='arjun.reddy@example.com'),
        Doctor(name='Dr. Lakshmi Rao', email='lakshmi.rao@example.com'),
    ),
    'Endocrinology': (
        Doctor(name='Dr. Kavita Desai', email='kavita.desai@example.com'),
        Doctor(name='Dr. Mohan Kumar', email='mohan.kumar@example.com'),
    ),
    'Oncology': (
        Doctor(name='Dr. Siddharth Bose', email='siddharth.bose@example.com'),
        Doctor(name='Dr. Nisha Verma', email='nisha.verma@example.com'),
    ),
    'Hematology': (
        Doctor(name='Dr. Anil Kapoor', email='anil.kapoor@example.com'),
        Doctor(name='Dr. Sunita Pillai', email='sunita.pillai@example.com'),
    ),
    'Dermatology': (
        Doctor(name='Dr. Riya Sen', email='riya.sen@example.com'),
        Doctor(name='Dr. Amitabh Das', email='amitabh.das@example.com'),
    ),
    'Psychiatry': (
        Doctor(name='Dr. Shalini Mehta', email='shalini.mehta@example.com'),
        Doctor(name='Dr. Rohan Joshi', email='rohan.joshi@example.com'),
    ),
})

TIME_SLOTS: Tuple[str, ...] = ('10:00 AM', '1:00 PM', '2:00 PM', '3:00 PM')

_SPECIALTY_INDEX: Dict[str, str] = {normalize(s): s for s in SPECIALTIES}
_SLOT_INDEX: Dict[str, str] = {normalize_time_slot(s): s for s in TIME_SLOTS}


def find_specialty(name: Optional[str]) -> Optional[str]:
    """Return the canonical specialty name, or None when unknown."""
    return _SPECIALTY_INDEX.get(normalize(name))


def doctors_for(specialty: Optional[str]) -> List[Doctor]:
    """Doctors listed under a canonical specialty name (empty when unknown)."""
    if not specialty:
        return []
    return list(DOCTORS.get(specialty, ()))


def find_doctor(specialty: Optional[str], doctor_name: Optional[str]) -> Optional[Doctor]:
    """Resolve a doctor by name within one specialty."""
    wanted = normalize(doctor_name)
    if not wanted:
        return None
    for doctor in doctors_for(specialty):
        if normalize(doctor.name) == wanted:
            return doctor
    return None


def find_time_slot(slot: Optional[str]) -> Optional[str]:
    """Return the canonical slot matching ``slot`` after normalization."""
    normalized = normalize_time_slot(slot)
    if not normalized:
        return None
    return _SLOT_INDEX.get(normalized)
