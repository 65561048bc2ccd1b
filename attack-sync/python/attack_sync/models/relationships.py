"""
STIX relationship edges and the join tables derived from them
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Index, Integer, String, TIMESTAMP, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin

class AttackRelationship(Base, TimestampMixin):
    __tablename__ = 'attack_relationships'
    
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    domain: Mapped[str] = mapped_column(String(32), nullable=False)
    stix_id: Mapped[str] = mapped_column(String(128), nullable=False)
    relationship_type: Mapped[str] = mapped_column(String(64), nullable=False)
    source_ref: Mapped[str] = mapped_column(String(128), nullable=False)
    target_ref: Mapped[str] = mapped_column(String(128), nullable=False)
    modified: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    is_revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    
    __table_args__ = (
        UniqueConstraint('domain', 'stix_id', name='uq_attack_relationships_domain_stix_id'),
        Index('idx_attack_relationships_src_target', 'domain', 'source_ref', 'target_ref'),
    )

# Derived maps - rebuilt wholesale per domain on every sync

class TechniqueTacticMap(Base):
    __tablename__ = 'technique_tactic_map'
    
    domain: Mapped[str] = mapped_column(String(32), primary_key=True)
    technique_stix_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    tactic_stix_id: Mapped[str] = mapped_column(String(128), primary_key=True)

class GroupTechniqueMap(Base):
    __tablename__ = 'group_technique_map'
    
    domain: Mapped[str] = mapped_column(String(32), primary_key=True)
    group_stix_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    technique_stix_id: Mapped[str] = mapped_column(String(128), primary_key=True)

class SoftwareTechniqueMap(Base):
    __tablename__ = 'software_technique_map'
    
    domain: Mapped[str] = mapped_column(String(32), primary_key=True)
    software_stix_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    technique_stix_id: Mapped[str] = mapped_column(String(128), primary_key=True)

class MitigationTechniqueMap(Base):
    __tablename__ = 'mitigation_technique_map'
    
    domain: Mapped[str] = mapped_column(String(32), primary_key=True)
    mitigation_stix_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    technique_stix_id: Mapped[str] = mapped_column(String(128), primary_key=True)

class DataSourceTechniqueMap(Base):
    __tablename__ = 'datasource_technique_map'
    
    domain: Mapped[str] = mapped_column(String(32), primary_key=True)
    datasource_stix_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    technique_stix_id: Mapped[str] = mapped_column(String(128), primary_key=True)
