"""
Tests for the attack-sync-processor Lambda entry point
"""

import pytest

import lambda_function
from attack_sync.exceptions import DatabaseError, TransportError
from attack_sync.schemas import SyncStateSchema, SyncSummary

def summary_for(domain):
    return SyncSummary(
        domain=domain,
        collection_id=f"x-mitre-collection--{domain}",
        fetched_object_count=2,
        next_added_after="2026-01-01T00:00:00Z",
        full_sync=True,
        object_counts={'objects': 2},
    )

class StubSyncService:
    """Records run_sync calls; domains listed in ``failing`` raise"""
    
    failing = set()
    failure = None
    runs = []
    
    def run_sync(self, domain='enterprise', full=False, since=None):
        self.runs.append({'domain': domain, 'full': full, 'since': since})
        if domain in self.failing:
            raise self.failure or TransportError(f"TAXII request failed (503 Service Unavailable) for {domain}")
        return summary_for(domain)
    
    def get_status(self, domain):
        if domain == 'enterprise':
            return SyncStateSchema(domain='enterprise', last_added_after="2026-01-01T00:00:00Z")
        return None

@pytest.fixture(autouse=True)
def stub_service(monkeypatch):
    StubSyncService.failing = set()
    StubSyncService.failure = None
    StubSyncService.runs = []
    monkeypatch.setattr(lambda_function, 'AttackSyncService', StubSyncService)
    return StubSyncService

class TestSyncAction:
    
    def test_default_event_syncs_enterprise(self, stub_service):
        response = lambda_function.lambda_handler({}, None)
        
        assert response['statusCode'] == 200
        assert stub_service.runs == [{'domain': 'enterprise', 'full': False, 'since': None}]
        result = response['body']['results'][0]
        assert result['status'] == 'completed'
        assert result['domain'] == 'enterprise'
        assert result['fetched_object_count'] == 2
    
    def test_full_and_since_are_passed_through(self, stub_service):
        event = {'action': 'sync', 'domain': 'ICS', 'full': True, 'since': '2025-06-01T00:00:00Z'}
        
        response = lambda_function.lambda_handler(event, None)
        
        assert response['statusCode'] == 200
        assert stub_service.runs == [{'domain': 'ics', 'full': True, 'since': '2025-06-01T00:00:00Z'}]
    
    def test_all_domains(self, stub_service):
        response = lambda_function.lambda_handler({'domain': 'all'}, None)
        
        assert response['statusCode'] == 200
        assert [run['domain'] for run in stub_service.runs] == ['enterprise', 'ics', 'mobile']
    
    def test_partial_failure(self, stub_service):
        stub_service.failing = {'mobile'}
        
        response = lambda_function.lambda_handler({'domain': 'all'}, None)
        
        assert response['statusCode'] == 207
        statuses = {r['domain']: r['status'] for r in response['body']['results']}
        assert statuses == {'enterprise': 'completed', 'ics': 'completed', 'mobile': 'failed'}
    
    def test_storage_failure_does_not_stop_other_domains(self, stub_service):
        stub_service.failing = {'enterprise'}
        stub_service.failure = DatabaseError("Sync state storage failed for enterprise: no such table")
        
        response = lambda_function.lambda_handler({'domain': 'all'}, None)
        
        assert response['statusCode'] == 207
        assert [run['domain'] for run in stub_service.runs] == ['enterprise', 'ics', 'mobile']
        statuses = {r['domain']: r['status'] for r in response['body']['results']}
        assert statuses == {'enterprise': 'failed', 'ics': 'completed', 'mobile': 'completed'}
    
    @pytest.mark.parametrize("flag, expected", [
        (True, True), (False, False), ("true", True), ("TRUE", True), ("1", True),
        ("false", False), ("0", False), ("", False),
    ])
    def test_full_flag_parsing(self, stub_service, flag, expected):
        lambda_function.lambda_handler({'domain': 'enterprise', 'full': flag}, None)
        
        assert stub_service.runs[0]['full'] is expected
    
    def test_failed_sync(self, stub_service):
        stub_service.failing = {'enterprise'}
        
        response = lambda_function.lambda_handler({'domain': 'enterprise'}, None)
        
        assert response['statusCode'] == 500
        assert "503" in response['body']['results'][0]['error']
    
    def test_busy_domain(self, stub_service):
        assert lambda_function.sync_guard.acquire('enterprise')
        try:
            response = lambda_function.lambda_handler({'domain': 'enterprise'}, None)
        finally:
            lambda_function.sync_guard.release('enterprise')
        
        assert response['statusCode'] == 409
        assert response['body']['results'][0]['status'] == 'busy'
        assert stub_service.runs == []
    
    def test_guard_released_after_failure(self, stub_service):
        stub_service.failing = {'enterprise'}
        lambda_function.lambda_handler({'domain': 'enterprise'}, None)
        
        assert lambda_function.sync_guard.acquire('enterprise')
        lambda_function.sync_guard.release('enterprise')
    
    def test_unknown_domain(self, stub_service):
        response = lambda_function.lambda_handler({'domain': 'pre-attack'}, None)
        
        assert response['statusCode'] == 400
        assert "pre-attack" in response['body']['error']
        assert stub_service.runs == []

class TestOtherActions:
    
    def test_status(self):
        response = lambda_function.lambda_handler({'action': 'status'}, None)
        
        assert response['statusCode'] == 200
        states = response['body']['sync_state']
        assert set(states) == {'enterprise', 'ics', 'mobile'}
        assert states['enterprise']['last_added_after'] == "2026-01-01T00:00:00Z"
        assert states['mobile'] is None
    
    def test_unknown_action(self):
        response = lambda_function.lambda_handler({'action': 'purge'}, None)
        
        assert response['statusCode'] == 400
        assert response['body']['error'] == "Unknown action: purge"
    
    def test_unexpected_error(self, monkeypatch):
        def explode(domain):
            raise RuntimeError("boom")
        monkeypatch.setattr(lambda_function, '_resolve_domains', explode)
        
        response = lambda_function.lambda_handler({'action': 'sync'}, None)
        
        assert response['statusCode'] == 500
        assert response['body']['message'] == "boom"
