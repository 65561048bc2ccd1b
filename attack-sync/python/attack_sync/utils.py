"""
Utility functions shared by the sync pipeline
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from stix2.utils import format_datetime, get_type_from_id

# source_name / kill_chain_name values used by the three ATT&CK domains
ATTACK_AUTHORITIES = frozenset({'mitre-attack', 'mitre-mobile-attack', 'mitre-ics-attack'})

def utc_now() -> datetime:
    """Get current UTC timestamp"""
    return datetime.now(timezone.utc)

def format_watermark(moment: datetime) -> str:
    """Render a datetime as a STIX/TAXII timestamp usable for added_after"""
    return format_datetime(moment)

def stix_type_of(stix_id: Optional[str]) -> Optional[str]:
    """'intrusion-set--1234' -> 'intrusion-set'"""
    if not stix_id or '--' not in stix_id:
        return None
    return get_type_from_id(stix_id)

def get_attack_external_id(stix_obj: Dict[str, Any]) -> Optional[str]:
    """Return the ATT&CK short code (T1059, TA0002, G0016...) of a STIX object"""
    for ref in stix_obj.get('external_references') or []:
        if isinstance(ref, dict) and ref.get('source_name') in ATTACK_AUTHORITIES:
            return ref.get('external_id') or None
    return None

def string_list(value: Any) -> List[str]:
    """Coerce optional STIX list properties to a list of strings"""
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Iterable):
        return [str(item) for item in value if item is not None]
    return []
