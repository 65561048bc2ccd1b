"""
STIX parser for MITRE ATT&CK collections

Turns the flat list of objects returned by the TAXII server into a ParsedBundle: one
raw record per object plus typed records for the ATT&CK kinds we model. No I/O happens here.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError
from stix2.utils import parse_into_datetime

from .schemas.records import (
    AttackRecord, DataComponentRecord, DataSourceRecord, GroupRecord, MitigationRecord,
    ParsedBundle, RelationshipRecord, SoftwareRecord, StixObjectRecord, TacticRecord,
    TechniqueRecord, TechniqueTacticLink
)
from .utils import ATTACK_AUTHORITIES, get_attack_external_id, stix_type_of, string_list

logger = logging.getLogger(__name__)

SUBTECHNIQUE_SEPARATOR = '.'

class RelationshipMapping(str, Enum):
    GROUP_TECHNIQUE = 'group_technique'
    SOFTWARE_TECHNIQUE = 'software_technique'
    MITIGATION_TECHNIQUE = 'mitigation_technique'
    DATACOMPONENT_TECHNIQUE = 'datacomponent_technique'

# (relationship_type, source types, target types) -> derived map
RELATIONSHIP_RULES = [
    ('uses', {'intrusion-set'}, {'attack-pattern'}, RelationshipMapping.GROUP_TECHNIQUE),
    ('uses', {'malware', 'tool'}, {'attack-pattern'}, RelationshipMapping.SOFTWARE_TECHNIQUE),
    ('mitigates', {'course-of-action'}, {'attack-pattern'}, RelationshipMapping.MITIGATION_TECHNIQUE),
    ('detects', {'x-mitre-data-component'}, {'attack-pattern'}, RelationshipMapping.DATACOMPONENT_TECHNIQUE),
]

def classify_relationship(relationship_type: str, source_ref: str, target_ref: str) -> Optional[RelationshipMapping]:
    """
    Decide which derived map a relationship edge feeds, judging by the stix_id prefixes
    on either side. ``uses`` is shared by groups and software, so the source prefix is
    what tells them apart. Edges matching no rule return None and are ignored.
    """
    source_type = stix_type_of(source_ref)
    target_type = stix_type_of(target_ref)
    for rule_type, source_types, target_types, mapping in RELATIONSHIP_RULES:
        if relationship_type == rule_type and source_type in source_types and target_type in target_types:
            return mapping
    return None

def parse_stix_timestamp(value: Any):
    """Parse a STIX timestamp, returning None for missing or malformed values"""
    if not value:
        return None
    try:
        return parse_into_datetime(value)
    except (ValueError, TypeError):
        logger.warning(f"Ignoring malformed STIX timestamp: {value!r}")
        return None

def is_revoked(stix_obj: Dict[str, Any]) -> bool:
    return bool(stix_obj.get('revoked') or stix_obj.get('x_mitre_deprecated'))

def _modified(stix_obj: Dict[str, Any]):
    return parse_stix_timestamp(stix_obj.get('modified') or stix_obj.get('created'))

def _common_fields(stix_obj: Dict[str, Any], domain: str, external_id: str) -> Dict[str, Any]:
    return {
        'domain': domain,
        'stix_id': stix_obj['id'],
        'external_id': external_id,
        'name': stix_obj.get('name') or '',
        'description': stix_obj.get('description') or '',
        'modified': _modified(stix_obj),
        'is_revoked': is_revoked(stix_obj),
    }

def _attack_phases(stix_obj: Dict[str, Any]) -> List[str]:
    phases = []
    for phase in stix_obj.get('kill_chain_phases') or []:
        if not isinstance(phase, dict):
            continue
        if phase.get('kill_chain_name') in ATTACK_AUTHORITIES and phase.get('phase_name'):
            phases.append(phase['phase_name'])
    return phases

def _build_tactic(stix_obj, domain, external_id):
    return TacticRecord(
        **_common_fields(stix_obj, domain, external_id),
        shortname=stix_obj.get('x_mitre_shortname'),
    )

def _build_technique(stix_obj, domain, external_id):
    is_subtechnique = SUBTECHNIQUE_SEPARATOR in external_id
    return TechniqueRecord(
        **_common_fields(stix_obj, domain, external_id),
        is_subtechnique=is_subtechnique,
        parent_external_id=external_id.split(SUBTECHNIQUE_SEPARATOR)[0] if is_subtechnique else None,
        platforms=string_list(stix_obj.get('x_mitre_platforms')),
        permissions_required=string_list(stix_obj.get('x_mitre_permissions_required')),
        detection=stix_obj.get('x_mitre_detection'),
        data_sources=string_list(stix_obj.get('x_mitre_data_sources')),
        kill_chain_phases=_attack_phases(stix_obj),
        version=stix_obj.get('x_mitre_version'),
    )

def _build_group(stix_obj, domain, external_id):
    return GroupRecord(
        **_common_fields(stix_obj, domain, external_id),
        aliases=string_list(stix_obj.get('aliases')),
    )

def _build_software(stix_obj, domain, external_id):
    return SoftwareRecord(
        **_common_fields(stix_obj, domain, external_id),
        software_type=stix_obj['type'],  # 'malware' or 'tool'
        aliases=string_list(stix_obj.get('x_mitre_aliases')),
        platforms=string_list(stix_obj.get('x_mitre_platforms')),
    )

def _build_mitigation(stix_obj, domain, external_id):
    return MitigationRecord(**_common_fields(stix_obj, domain, external_id))

def _build_datasource(stix_obj, domain, external_id):
    return DataSourceRecord(**_common_fields(stix_obj, domain, external_id))

def _build_datacomponent(stix_obj, domain, external_id):
    return DataComponentRecord(
        **_common_fields(stix_obj, domain, external_id),
        datasource_ref=stix_obj.get('x_mitre_data_source_ref'),
    )

def _build_relationship(stix_obj, domain, external_id):
    return RelationshipRecord(
        domain=domain,
        stix_id=stix_obj['id'],
        relationship_type=stix_obj.get('relationship_type') or '',
        source_ref=stix_obj.get('source_ref') or '',
        target_ref=stix_obj.get('target_ref') or '',
        modified=_modified(stix_obj),
        is_revoked=is_revoked(stix_obj),
    )

TYPE_BUILDERS: Dict[str, Callable[[Dict[str, Any], str, Optional[str]], AttackRecord]] = {
    'x-mitre-tactic': _build_tactic,
    'attack-pattern': _build_technique,
    'intrusion-set': _build_group,
    'malware': _build_software,
    'tool': _build_software,
    'course-of-action': _build_mitigation,
    'x-mitre-data-source': _build_datasource,
    'x-mitre-data-component': _build_datacomponent,
    'relationship': _build_relationship,
}

# Kinds keyed by their ATT&CK short code; relationships have none
SHORT_CODE_OPTIONAL = {'relationship'}

def parse_bundle(objects: List[Dict[str, Any]], domain: str) -> ParsedBundle:
    """Classify and normalize a list of STIX objects fetched for one ATT&CK domain"""
    parsed = ParsedBundle(domain=domain)
    skipped = 0
    
    for stix_obj in objects:
        if not isinstance(stix_obj, dict) or not stix_obj.get('id') or not stix_obj.get('type'):
            logger.warning(f"Skipping STIX object without id/type in {domain} bundle")
            skipped += 1
            continue
        
        stix_type = stix_obj['type']
        try:
            raw_record = StixObjectRecord(
                domain=domain,
                stix_id=stix_obj['id'],
                stix_type=stix_type,
                spec_version=stix_obj.get('spec_version'),
                modified=_modified(stix_obj),
                is_revoked=is_revoked(stix_obj),
                raw_object=stix_obj,
            )
        except ValidationError as e:
            logger.warning(f"Skipping malformed STIX object {stix_obj['id']!r} in {domain} bundle: {e}")
            skipped += 1
            continue
        parsed.objects.append(raw_record)

        builder = TYPE_BUILDERS.get(stix_type)
        if builder is None:
            continue
        
        external_id = get_attack_external_id(stix_obj)
        if external_id is None and stix_type not in SHORT_CODE_OPTIONAL:
            logger.debug(f"No ATT&CK reference for {stix_obj['id']}, keeping raw object only")
            continue
        
        try:
            record = builder(stix_obj, domain, external_id)
        except ValidationError as e:
            logger.warning(f"Keeping {stix_obj['id']} as raw object only: {e}")
            continue
        parsed.add(record)
        
        if isinstance(record, TechniqueRecord):
            parsed.technique_tactics.extend(
                TechniqueTacticLink(domain=domain, technique_stix_id=record.stix_id, tactic_shortname=phase)
                for phase in record.kill_chain_phases
            )
    
    logger.info(f"Parsed {domain} bundle: {parsed.counts()} (skipped {skipped})")
    return parsed
