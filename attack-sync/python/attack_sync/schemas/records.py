"""
Normalized ATT&CK records produced by the STIX parser

Each STIX object kind gets its own variant tagged by ``kind``; ``AttackRecord`` is the
discriminated union of the typed variants. Objects of unrecognized types only ever appear
as ``StixObjectRecord`` entries.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import Field

from .base import BaseSchema

class StixObjectRecord(BaseSchema):
    domain: str
    stix_id: str
    stix_type: str
    spec_version: Optional[str] = None
    modified: Optional[datetime] = None
    is_revoked: bool = False
    raw_object: Dict[str, Any]

class AttackEntityRecord(BaseSchema):
    domain: str
    stix_id: str
    external_id: str
    name: str = ''
    description: str = ''
    modified: Optional[datetime] = None
    is_revoked: bool = False

class TacticRecord(AttackEntityRecord):
    kind: Literal['tactic'] = 'tactic'
    shortname: Optional[str] = None

class TechniqueRecord(AttackEntityRecord):
    kind: Literal['technique'] = 'technique'
    is_subtechnique: bool = False
    parent_external_id: Optional[str] = None
    platforms: List[str] = Field(default_factory=list)
    permissions_required: List[str] = Field(default_factory=list)
    detection: Optional[str] = None
    data_sources: List[str] = Field(default_factory=list)
    kill_chain_phases: List[str] = Field(default_factory=list)
    version: Optional[str] = None

class GroupRecord(AttackEntityRecord):
    kind: Literal['group'] = 'group'
    aliases: List[str] = Field(default_factory=list)

class SoftwareRecord(AttackEntityRecord):
    kind: Literal['software'] = 'software'
    software_type: Literal['malware', 'tool']
    aliases: List[str] = Field(default_factory=list)
    platforms: List[str] = Field(default_factory=list)

class MitigationRecord(AttackEntityRecord):
    kind: Literal['mitigation'] = 'mitigation'

class DataSourceRecord(AttackEntityRecord):
    kind: Literal['datasource'] = 'datasource'

class DataComponentRecord(AttackEntityRecord):
    kind: Literal['datacomponent'] = 'datacomponent'
    datasource_ref: Optional[str] = None

class RelationshipRecord(BaseSchema):
    kind: Literal['relationship'] = 'relationship'
    domain: str
    stix_id: str
    relationship_type: str
    source_ref: str
    target_ref: str
    modified: Optional[datetime] = None
    is_revoked: bool = False

AttackRecord = Annotated[
    Union[
        TacticRecord, TechniqueRecord, GroupRecord, SoftwareRecord, MitigationRecord,
        DataSourceRecord, DataComponentRecord, RelationshipRecord
    ],
    Field(discriminator='kind')
]

class TechniqueTacticLink(BaseSchema):
    """Technique phase tag awaiting resolution to a tactic stix_id"""
    domain: str
    technique_stix_id: str
    tactic_shortname: str

class ParsedBundle(BaseSchema):
    domain: str
    objects: List[StixObjectRecord] = Field(default_factory=list)
    tactics: List[TacticRecord] = Field(default_factory=list)
    techniques: List[TechniqueRecord] = Field(default_factory=list)
    groups: List[GroupRecord] = Field(default_factory=list)
    software: List[SoftwareRecord] = Field(default_factory=list)
    mitigations: List[MitigationRecord] = Field(default_factory=list)
    datasources: List[DataSourceRecord] = Field(default_factory=list)
    datacomponents: List[DataComponentRecord] = Field(default_factory=list)
    relationships: List[RelationshipRecord] = Field(default_factory=list)
    technique_tactics: List[TechniqueTacticLink] = Field(default_factory=list)

    def add(self, record: AttackRecord) -> None:
        """Append a typed record to the bucket matching its kind"""
        BUCKETS[record.kind](self).append(record)

    def is_empty(self) -> bool:
        return not self.objects

    def counts(self) -> Dict[str, int]:
        return {
            'objects': len(self.objects),
            'tactics': len(self.tactics),
            'techniques': len(self.techniques),
            'groups': len(self.groups),
            'software': len(self.software),
            'mitigations': len(self.mitigations),
            'datasources': len(self.datasources),
            'datacomponents': len(self.datacomponents),
            'relationships': len(self.relationships),
        }

BUCKETS = {
    'tactic': lambda bundle: bundle.tactics,
    'technique': lambda bundle: bundle.techniques,
    'group': lambda bundle: bundle.groups,
    'software': lambda bundle: bundle.software,
    'mitigation': lambda bundle: bundle.mitigations,
    'datasource': lambda bundle: bundle.datasources,
    'datacomponent': lambda bundle: bundle.datacomponents,
    'relationship': lambda bundle: bundle.relationships,
}
