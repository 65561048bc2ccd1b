import pytest

from attack_sync.config import DEFAULT_COLLECTIONS, DEFAULT_TAXII_BASE_URL, AttackSyncSettings
from attack_sync.exceptions import ConfigurationError

ATTACK_ENV = [
    'ATTACK_TAXII_BASE_URL', 'ATTACK_ENTERPRISE_COLLECTION_ID', 'ATTACK_MOBILE_COLLECTION_ID',
    'ATTACK_ICS_COLLECTION_ID', 'ATTACK_TAXII_MAX_PAGES', 'ATTACK_TAXII_TIMEOUT', 'ATTACK_SYNC_USER_AGENT',
]

@pytest.fixture
def clean_env(monkeypatch):
    for name in ATTACK_ENV:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch

class TestSettings:
    
    def test_defaults(self, clean_env):
        settings = AttackSyncSettings.from_env()
        
        assert settings.taxii_base_url == DEFAULT_TAXII_BASE_URL
        assert settings.collections == DEFAULT_COLLECTIONS
        assert settings.max_pages == 100
        assert settings.domains == ['enterprise', 'ics', 'mobile']
    
    def test_environment_overrides(self, clean_env):
        clean_env.setenv('ATTACK_TAXII_BASE_URL', 'https://taxii.internal/api/v21/')
        clean_env.setenv('ATTACK_ICS_COLLECTION_ID', 'x-mitre-collection--mirror')
        clean_env.setenv('ATTACK_TAXII_MAX_PAGES', '7')
        clean_env.setenv('ATTACK_TAXII_TIMEOUT', '12.5')
        
        settings = AttackSyncSettings.from_env()
        
        assert settings.taxii_base_url == 'https://taxii.internal/api/v21'
        assert settings.resolve_collection_id('ics') == 'x-mitre-collection--mirror'
        assert settings.resolve_collection_id('enterprise') == DEFAULT_COLLECTIONS['enterprise']
        assert settings.max_pages == 7
        assert settings.request_timeout == 12.5
    
    def test_unknown_domain(self):
        with pytest.raises(ConfigurationError, match="Unsupported ATT&CK domain: pre-attack"):
            AttackSyncSettings().resolve_collection_id('pre-attack')
    
    def test_page_ceiling_must_be_positive(self):
        with pytest.raises(ValueError):
            AttackSyncSettings(max_pages=0)
