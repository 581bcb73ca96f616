"""Keyword classifiers and input normalization for chat messages.

Every classifier here is a pure function of its input text. Matching is plain
substring containment on the normalized message, not whole-word matching, so
short keywords over-match: "hi" fires inside "this", "cold" inside "colder".
That tolerance is intended; narrowing it changes which intent wins for a
message and must be treated as a behavior change.
"""
import re
from typing import Iterable, List, Optional

from appointment_bot.utils.logger import get_logger

logger = get_logger(__name__)

GREETING_KEYWORDS = (
    'hello', 'hi', 'hey', 'greetings', 'good morning', 'good afternoon',
    'good evening', 'howdy', 'yo', 'hola',
)

APPOINTMENT_KEYWORDS = (
    'book appointment', 'schedule appointment', 'make appointment',
    'book a visit', 'schedule a visit', 'arrange appointment',
    'need to see a doctor', 'want to see a doctor', 'book with doctor',
    'schedule with doctor', 'appointment with doctor', 'see a specialist',
    'visit a doctor', 'consult a doctor', 'meet a doctor',
)

MEDICAL_KEYWORDS = (
    'symptom', 'disease', 'condition', 'treatment', 'medication', 'diagnosis',
    'pain', 'fever', 'infection', 'injury', 'surgery', 'therapy', 'health',
    'illness', 'doctor', 'hospital', 'medicine', 'prescription', 'allergy',
    'chronic', 'acute', 'virus', 'bacteria', 'cancer', 'diabetes', 'heart',
    'blood', 'pressure', 'stroke', 'asthma', 'arthritis', 'mental', 'depression',
    'anxiety', 'vaccine', 'immune', 'flu', 'cold', 'cough', 'headache', 'migraine',
    'nausea', 'fatigue', 'rash', 'swelling', 'inflammation', 'bleeding', 'bruise',
    'fracture', 'sprain', 'strain', 'tumor', 'ulcer', 'seizure', 'dizziness',
    'shortness', 'breath', 'chest', 'abdomen', 'kidney', 'liver', 'lung',
    'thyroid', 'hormone', 'insulin', 'cholesterol', 'allergic', 'reaction',
    'antibiotics', 'antiviral', 'painkiller', 'syringe', 'injection', 'scan',
    'xray', 'mri', 'ultrasound', 'biopsy', 'chemotherapy', 'radiation', 'dialysis',
    'transplant', 'system', 'autoimmune', 'rheumatoid', 'psoriasis',
    'eczema', 'hypertension', 'hypotension', 'anemia', 'leukemia', 'lymphoma',
    'epilepsy', 'parkinson', 'alzheimer', 'concussion', 'obesity', 'malnutrition',
    'vitamin', 'deficiency', 'legs pain', 'hand pain', 'back pain', 'knee pain',
    'eyes related problem', 'eye pain', 'vision loss', 'blurred vision', 'glaucoma',
    'cataract', 'conjunctivitis', 'dry eyes', 'retina', 'cornea', 'neck pain',
    'shoulder pain', 'elbow pain', 'wrist pain', 'hip pain', 'ankle pain',
    'foot pain', 'joint pain', 'muscle pain', 'numbness', 'tingling', 'cramp',
    'spasm', 'stiffness', 'sciatica', 'tendonitis', 'bursitis', 'gout',
    'osteoporosis', 'scoliosis', 'hernia', 'disc slip', 'sinus', 'sinusitis',
    'sore throat', 'tonsillitis', 'laryngitis', 'bronchitis', 'pneumonia',
    'tuberculosis', 'emphysema', 'copd', 'gastritis', 'acid reflux', 'gerd',
    'constipation', 'diarrhea', 'ibs', 'crohn', 'colitis', 'appendicitis',
    'gallstone', 'pancreatitis', 'hepatitis', 'cirrhosis', 'bladder', 'uti',
    'kidney stone', 'prostate', 'incontinence', 'menopause', 'pms', 'endometriosis',
    'fibroid', 'infertility', 'erectile', 'dysfunction', 'std', 'hiv', 'herpes',
    'hpv', 'syphilis', 'gonorrhea', 'chlamydia', 'acne', 'rosacea', 'dandruff',
    'alopecia', 'hives', 'warts', 'mole', 'melanoma', 'basal cell', 'squamous',
    'psoriatic', 'lupus', 'scleroderma', 'vitiligo', 'insomnia', 'sleep apnea',
    'narcolepsy', 'restless legs', 'phobia', 'ocd', 'ptsd', 'bipolar', 'schizophrenia',
    'addiction', 'detox', 'rehab', 'anorexia', 'bulimia', 'binge eating', 'vertigo',
    'tinnitus', 'hearing loss', 'ear infection', 'meningitis', 'encephalitis',
    'hydrocephalus', 'aneurysm', 'hemorrhage', 'clot', 'angina', 'arrhythmia',
    'cardiomyopathy', 'stent', 'bypass', 'pacemaker', 'endoscopy', 'colonoscopy',
    'mammogram', 'pap smear', 'prostate exam', 'blood test', 'urine test',
    'stool test', 'ecg', 'eeg', 'ct scan', 'pet scan', 'ventilator', 'oxygen therapy',
)

_EMAIL_SHAPE = re.compile(r'\S+@\S+\.\S+')
_WHITESPACE = re.compile(r'\s+')
_NON_SLOT_CHARS = re.compile(r'[^0-9: APM]')
_MERIDIEM = re.compile(r'\s*([AP]M)')


def normalize(text: Optional[str]) -> str:
    """Trim, collapse whitespace runs and lowercase. ``None`` becomes ``""``."""
    if not text:
        return ''
    return _WHITESPACE.sub(' ', text.strip()).lower()


def normalize_time_slot(text: Optional[str]) -> str:
    """Reduce a time slot string to its canonical comparison form.

    Only digits, ``:``, spaces and the letters A/M/P survive; the meridiem is
    always separated from the time by one space, so "2:00PM", "2:00   pm" and
    "2:00 PM" all normalize to "2:00 PM".
    """
    if not text:
        return ''
    cleaned = _NON_SLOT_CHARS.sub('', text.strip().upper())
    cleaned = _MERIDIEM.sub(r' \1', cleaned)
    return _WHITESPACE.sub(' ', cleaned).strip()


def is_valid_email(text: Optional[str]) -> bool:
    """Permissive ``something@something.something`` check, not RFC complete."""
    return bool(text) and _EMAIL_SHAPE.search(text) is not None


def matched_keywords(text: Optional[str], keywords: Iterable[str]) -> List[str]:
    """Return every keyword contained in the normalized text."""
    normalized = normalize(text)
    if not normalized:
        return []
    return [keyword for keyword in keywords if keyword in normalized]


def is_greeting(text: Optional[str]) -> bool:
    return bool(matched_keywords(text, GREETING_KEYWORDS))


def is_appointment_related(text: Optional[str]) -> bool:
    return bool(matched_keywords(text, APPOINTMENT_KEYWORDS))


def is_medical_related(text: Optional[str]) -> bool:
    """True when the text contains any medical keyword.

    "I have a cold" matches on "cold"; so does "a colder morning". Both are
    accepted outcomes of substring matching.
    """
    matches = matched_keywords(text, MEDICAL_KEYWORDS)
    if matches:
        logger.debug(f"Matched medical keywords: {matches}")
    return bool(matches)
