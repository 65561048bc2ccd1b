"""
Repository for MITRE ATT&CK catalog data

Holds the upsert engine: a parsed bundle is merged into the typed tables with
INSERT ... ON CONFLICT, then every derived map of the domain is deleted and rebuilt
from what is stored, all inside the caller's transaction.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .base import BaseRepository
from ..exceptions import DatabaseError
from ..models.attack import (
    AttackObject, AttackTactic, AttackTechnique, AttackGroup, AttackSoftware,
    AttackMitigation, AttackDataSource, AttackDataComponent
)
from ..models.relationships import (
    AttackRelationship, TechniqueTacticMap, GroupTechniqueMap, SoftwareTechniqueMap,
    MitigationTechniqueMap, DataSourceTechniqueMap
)
from ..schemas.records import ParsedBundle
from ..stix_parser import RelationshipMapping, classify_relationship
from ..utils import utc_now

logger = logging.getLogger(__name__)

STIX_KEY = ('domain', 'stix_id')

# Typed tables in write order, with the ParsedBundle bucket feeding each
TYPED_TABLES = [
    (AttackTactic, 'tactics'),
    (AttackTechnique, 'techniques'),
    (AttackGroup, 'groups'),
    (AttackSoftware, 'software'),
    (AttackMitigation, 'mitigations'),
    (AttackDataSource, 'datasources'),
    (AttackDataComponent, 'datacomponents'),
    (AttackRelationship, 'relationships'),
]

# Relationship-derived maps: model and the column holding the edge's source side
RELATIONSHIP_MAPS = {
    RelationshipMapping.GROUP_TECHNIQUE: (GroupTechniqueMap, 'group_stix_id'),
    RelationshipMapping.SOFTWARE_TECHNIQUE: (SoftwareTechniqueMap, 'software_stix_id'),
    RelationshipMapping.MITIGATION_TECHNIQUE: (MitigationTechniqueMap, 'mitigation_stix_id'),
    RelationshipMapping.DATACOMPONENT_TECHNIQUE: (DataSourceTechniqueMap, 'datasource_stix_id'),
}

DERIVED_MAPS = [
    TechniqueTacticMap, GroupTechniqueMap, SoftwareTechniqueMap,
    MitigationTechniqueMap, DataSourceTechniqueMap
]

class AttackRepository(BaseRepository[AttackTechnique]):
    """Repository for MITRE ATT&CK data"""
    
    def __init__(self, session: Session):
        super().__init__(session, AttackTechnique)
    
    def upsert_attack_data(self, parsed: ParsedBundle) -> Dict[str, int]:
        """
        Merge a parsed bundle into storage and rebuild the domain's derived maps.
        Must run inside a transaction owned by the caller; any failure is raised as
        DatabaseError so the whole batch rolls back.
        """
        if parsed.is_empty():
            logger.info(f"No new ATT&CK objects for {parsed.domain}, nothing to upsert")
            return {}
        
        domain = parsed.domain
        now = utc_now()
        written: Dict[str, int] = {}
        
        try:
            written['objects'] = self.bulk_upsert(
                AttackObject,
                [dict(record.model_dump(), updated_date=now) for record in parsed.objects],
                STIX_KEY
            )
            for model_class, bucket in TYPED_TABLES:
                rows = [
                    dict(record.model_dump(exclude={'kind'}), updated_date=now)
                    for record in getattr(parsed, bucket)
                ]
                written[bucket] = self.bulk_upsert(model_class, rows, STIX_KEY)
            
            written.update(self.rebuild_derived_maps(domain, parsed))
        except SQLAlchemyError as e:
            logger.error(f"ATT&CK upsert failed for {domain}: {e}")
            raise DatabaseError(f"Failed to store ATT&CK {domain} data: {e}") from e
        
        logger.info(f"Upserted ATT&CK {domain} data: {written}")
        return written
    
    def rebuild_derived_maps(self, domain: str, parsed: Optional[ParsedBundle] = None) -> Dict[str, int]:
        """Delete every derived map row of the domain and recompute them from stored data"""
        for map_class in DERIVED_MAPS:
            self.session.execute(delete(map_class).where(map_class.domain == domain))
        
        counts = {}
        tactic_rows = self._technique_tactic_pairs(domain, parsed)
        counts[TechniqueTacticMap.__tablename__] = self._insert_pairs(
            TechniqueTacticMap, domain, 'technique_stix_id', 'tactic_stix_id', tactic_rows
        )
        
        for mapping, pairs in self._relationship_pairs(domain).items():
            map_class, source_column = RELATIONSHIP_MAPS[mapping]
            counts[map_class.__tablename__] = self._insert_pairs(
                map_class, domain, source_column, 'technique_stix_id', pairs
            )
        return counts
    
    def _tactic_index(self, domain: str) -> Dict[str, str]:
        """shortname -> tactic stix_id; a live tactic wins over a revoked one"""
        rows = self.session.execute(
            select(AttackTactic.shortname, AttackTactic.stix_id)
            .where(AttackTactic.domain == domain)
            .order_by(AttackTactic.is_revoked, AttackTactic.stix_id)
        ).all()
        index: Dict[str, str] = {}
        for shortname, stix_id in rows:
            if shortname:
                index.setdefault(shortname, stix_id)
        return index
    
    def _technique_tactic_pairs(self, domain: str, parsed: Optional[ParsedBundle]) -> Set[Tuple[str, str]]:
        """
        Phase tags of the batch's techniques come from the parser; techniques stored by
        earlier syncs contribute their persisted kill_chain_phases.
        """
        links: List[Tuple[str, str]] = []
        batch_ids: Set[str] = set()
        if parsed is not None:
            batch_ids = {technique.stix_id for technique in parsed.techniques}
            links.extend((link.technique_stix_id, link.tactic_shortname) for link in parsed.technique_tactics)
        
        stored = self.session.execute(
            select(AttackTechnique.stix_id, AttackTechnique.kill_chain_phases)
            .where(AttackTechnique.domain == domain)
        ).all()
        for stix_id, phases in stored:
            if stix_id not in batch_ids:
                links.extend((stix_id, phase) for phase in phases or [])
        
        tactic_index = self._tactic_index(domain)
        pairs = set()
        unresolved = set()
        for technique_stix_id, shortname in links:
            tactic_stix_id = tactic_index.get(shortname)
            if tactic_stix_id is None:
                unresolved.add(shortname)
                continue
            pairs.add((technique_stix_id, tactic_stix_id))
        
        if unresolved:
            logger.warning(f"No {domain} tactic found for phase(s): {sorted(unresolved)}")
        return pairs
    
    def _relationship_pairs(self, domain: str) -> Dict[RelationshipMapping, Set[Tuple[str, str]]]:
        """Classify every live stored relationship of the domain into its derived map"""
        pairs: Dict[RelationshipMapping, Set[Tuple[str, str]]] = {mapping: set() for mapping in RELATIONSHIP_MAPS}
        
        component_sources = dict(self.session.execute(
            select(AttackDataComponent.stix_id, AttackDataComponent.datasource_ref)
            .where(AttackDataComponent.domain == domain)
        ).all())
        
        relationships = self.session.execute(
            select(AttackRelationship.relationship_type, AttackRelationship.source_ref, AttackRelationship.target_ref)
            .where(AttackRelationship.domain == domain)
            .where(AttackRelationship.is_revoked.is_(False))
        ).all()
        
        for relationship_type, source_ref, target_ref in relationships:
            mapping = classify_relationship(relationship_type, source_ref, target_ref)
            if mapping is None:
                continue
            if mapping is RelationshipMapping.DATACOMPONENT_TECHNIQUE:
                # detects edges start at a data component; the map is keyed by its data source
                source_ref = component_sources.get(source_ref)
                if not source_ref:
                    continue
            pairs[mapping].add((source_ref, target_ref))
        return pairs
    
    def _insert_pairs(self, map_class, domain: str, left: str, right: str, pairs: Set[Tuple[str, str]]) -> int:
        if not pairs:
            return 0
        self.session.execute(
            insert(map_class),
            [{'domain': domain, left: a, right: b} for a, b in sorted(pairs)]
        )
        return len(pairs)
    
    def get_technique_by_external_id(self, domain: str, external_id: str) -> Optional[AttackTechnique]:
        """Get technique by ATT&CK technique ID"""
        return (
            self.session.query(AttackTechnique)
            .filter_by(domain=domain, external_id=external_id)
            .first()
        )
    
    def get_techniques_by_tactic(self, domain: str, tactic_shortname: str) -> List[AttackTechnique]:
        """Get techniques for a tactic, by its shortname (e.g. 'execution')"""
        return (
            self.session.query(AttackTechnique)
            .join(
                TechniqueTacticMap,
                (TechniqueTacticMap.domain == AttackTechnique.domain)
                & (TechniqueTacticMap.technique_stix_id == AttackTechnique.stix_id)
            )
            .join(
                AttackTactic,
                (AttackTactic.domain == TechniqueTacticMap.domain)
                & (AttackTactic.stix_id == TechniqueTacticMap.tactic_stix_id)
            )
            .filter(AttackTechnique.domain == domain, AttackTactic.shortname == tactic_shortname)
            .order_by(AttackTechnique.external_id)
            .all()
        )
