"""
Runtime configuration for the ATT&CK sync pipeline, read from environment variables
"""

import os
from functools import lru_cache
from typing import Dict

from pydantic import BaseModel, Field

from .exceptions import ConfigurationError

DEFAULT_TAXII_BASE_URL = "https://attack-taxii.mitre.org/api/v21"

DEFAULT_COLLECTIONS = {
    'enterprise': 'x-mitre-collection--1f5f1533-f617-4ca8-9ab4-6a02367fa019',
    'mobile': 'x-mitre-collection--f9e2a3a7-d6a2-4e46-b4c7-16e7b5f9f6f2',
    'ics': 'x-mitre-collection--90c00720-636b-4485-b342-8751d232bf09',
}

USER_AGENT = "ATTACK-Sync/1.0"

class AttackSyncSettings(BaseModel):
    taxii_base_url: str = DEFAULT_TAXII_BASE_URL
    collections: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_COLLECTIONS))
    max_pages: int = Field(100, ge=1)
    request_timeout: float = Field(60.0, gt=0)
    user_agent: str = USER_AGENT

    @classmethod
    def from_env(cls) -> 'AttackSyncSettings':
        """Build settings from ATTACK_* environment variables"""
        collections = {
            domain: os.getenv(f'ATTACK_{domain.upper()}_COLLECTION_ID', collection_id)
            for domain, collection_id in DEFAULT_COLLECTIONS.items()
        }
        return cls(
            taxii_base_url=os.getenv('ATTACK_TAXII_BASE_URL', DEFAULT_TAXII_BASE_URL).rstrip('/'),
            collections=collections,
            max_pages=int(os.getenv('ATTACK_TAXII_MAX_PAGES', '100')),
            request_timeout=float(os.getenv('ATTACK_TAXII_TIMEOUT', '60')),
            user_agent=os.getenv('ATTACK_SYNC_USER_AGENT', USER_AGENT),
        )

    @property
    def domains(self) -> list:
        return sorted(self.collections)

    def resolve_collection_id(self, domain: str) -> str:
        """Map an ATT&CK domain to its TAXII collection id"""
        collection_id = self.collections.get(domain)
        if not collection_id:
            raise ConfigurationError(f"Unsupported ATT&CK domain: {domain}")
        return collection_id

@lru_cache(maxsize=1)
def get_settings() -> AttackSyncSettings:
    return AttackSyncSettings.from_env()
