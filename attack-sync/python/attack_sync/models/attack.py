"""
MITRE ATT&CK catalog models, one table per STIX object kind
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, Index, Integer, String, Text, TIMESTAMP, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, JsonDocument, StringList, TimestampMixin

class AttackObject(Base, TimestampMixin):
    """Every fetched STIX object, whatever its type"""
    __tablename__ = 'attack_objects'
    
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    domain: Mapped[str] = mapped_column(String(32), nullable=False)
    stix_id: Mapped[str] = mapped_column(String(128), nullable=False)
    stix_type: Mapped[str] = mapped_column(String(64), nullable=False)
    spec_version: Mapped[Optional[str]] = mapped_column(String(16))
    modified: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    is_revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    raw_object: Mapped[Dict[str, Any]] = mapped_column(JsonDocument, nullable=False)
    
    __table_args__ = (
        UniqueConstraint('domain', 'stix_id', name='uq_attack_objects_domain_stix_id'),
        Index('idx_attack_objects_type', 'domain', 'stix_type'),
    )

class AttackEntityMixin(TimestampMixin):
    """Columns shared by every typed ATT&CK table"""
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    domain: Mapped[str] = mapped_column(String(32), nullable=False)
    stix_id: Mapped[str] = mapped_column(String(128), nullable=False)
    external_id: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    modified: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    is_revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

class AttackTactic(Base, AttackEntityMixin):
    __tablename__ = 'attack_tactics'
    
    shortname: Mapped[Optional[str]] = mapped_column(String(128))
    
    __table_args__ = (
        UniqueConstraint('domain', 'stix_id', name='uq_attack_tactics_domain_stix_id'),
    )

class AttackTechnique(Base, AttackEntityMixin):
    __tablename__ = 'attack_techniques'
    
    is_subtechnique: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    parent_external_id: Mapped[Optional[str]] = mapped_column(String(32))
    platforms: Mapped[Optional[List[str]]] = mapped_column(StringList)
    permissions_required: Mapped[Optional[List[str]]] = mapped_column(StringList)
    detection: Mapped[Optional[str]] = mapped_column(Text)
    data_sources: Mapped[Optional[List[str]]] = mapped_column(StringList)
    kill_chain_phases: Mapped[Optional[List[str]]] = mapped_column(StringList)
    version: Mapped[Optional[str]] = mapped_column(String(20))
    
    __table_args__ = (
        UniqueConstraint('domain', 'stix_id', name='uq_attack_techniques_domain_stix_id'),
        Index('idx_attack_techniques_domain_external_id', 'domain', 'external_id'),
    )

class AttackGroup(Base, AttackEntityMixin):
    __tablename__ = 'attack_groups'
    
    aliases: Mapped[Optional[List[str]]] = mapped_column(StringList)
    
    __table_args__ = (
        UniqueConstraint('domain', 'stix_id', name='uq_attack_groups_domain_stix_id'),
    )

class AttackSoftware(Base, AttackEntityMixin):
    __tablename__ = 'attack_software'
    
    software_type: Mapped[str] = mapped_column(String(32), nullable=False)
    aliases: Mapped[Optional[List[str]]] = mapped_column(StringList)
    platforms: Mapped[Optional[List[str]]] = mapped_column(StringList)
    
    __table_args__ = (
        UniqueConstraint('domain', 'stix_id', name='uq_attack_software_domain_stix_id'),
    )

class AttackMitigation(Base, AttackEntityMixin):
    __tablename__ = 'attack_mitigations'
    
    __table_args__ = (
        UniqueConstraint('domain', 'stix_id', name='uq_attack_mitigations_domain_stix_id'),
    )

class AttackDataSource(Base, AttackEntityMixin):
    __tablename__ = 'attack_datasources'
    
    __table_args__ = (
        UniqueConstraint('domain', 'stix_id', name='uq_attack_datasources_domain_stix_id'),
    )

class AttackDataComponent(Base, AttackEntityMixin):
    __tablename__ = 'attack_datacomponents'
    
    datasource_ref: Mapped[Optional[str]] = mapped_column(String(128))
    
    __table_args__ = (
        UniqueConstraint('domain', 'stix_id', name='uq_attack_datacomponents_domain_stix_id'),
    )
