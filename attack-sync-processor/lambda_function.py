# lambda_function.py
"""
ATT&CK Sync Lambda Function
Pulls MITRE ATT&CK from the TAXII 2.1 server and merges it into the database

Layers Required:
1. attack-sync dependencies (external packages)
2. attack-sync (models, repositories and sync pipeline)
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from attack_sync import AttackSyncService, get_settings
from attack_sync.exceptions import AttackSyncError, ConfigurationError

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

class DomainSyncGuard:
    """In-process lock per domain so a warm container never runs one domain twice at once"""
    
    def __init__(self):
        self._lock = threading.Lock()
        self._running = set()
    
    def acquire(self, domain: str) -> bool:
        with self._lock:
            if domain in self._running:
                return False
            self._running.add(domain)
            return True
    
    def release(self, domain: str) -> None:
        with self._lock:
            self._running.discard(domain)

sync_guard = DomainSyncGuard()

TRUE_STRINGS = {"1", "true", "yes", "on"}

def _as_bool(value: Any) -> bool:
    """Event flags may arrive as JSON booleans or as strings such as "false"."""
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return bool(value)

def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()

def _resolve_domains(domain: str) -> List[str]:
    settings = get_settings()
    if domain == 'all':
        return settings.domains
    settings.resolve_collection_id(domain)
    return [domain]

def _sync_domain(service: AttackSyncService, domain: str, full: bool, since: Optional[str] = None) -> Dict[str, Any]:
    if not sync_guard.acquire(domain):
        return {'domain': domain, 'status': 'busy', 'error': f"A sync for {domain} is already running"}
    try:
        summary = service.run_sync(domain=domain, full=full, since=since)
        return {'status': 'completed', **summary.model_dump(mode='json')}
    except AttackSyncError as e:
        return {'domain': domain, 'status': 'failed', 'error': str(e)}
    finally:
        sync_guard.release(domain)

def handle_sync(event: Dict[str, Any]) -> Dict[str, Any]:
    domains = _resolve_domains(str(event.get('domain', 'enterprise')).lower())
    full = _as_bool(event.get('full', False))
    since = event.get('since')
    
    logger.info(f"Starting ATT&CK sync - Domains: {domains}, Full: {full}, Since: {since}")
    
    service = AttackSyncService()
    results = [_sync_domain(service, domain, full, since) for domain in domains]
    
    statuses = {result['status'] for result in results}
    if statuses == {'completed'}:
        status_code = 200
    elif statuses == {'busy'}:
        status_code = 409
    elif 'completed' in statuses:
        status_code = 207  # partial success
    else:
        status_code = 500
    
    return {
        'statusCode': status_code,
        'body': {
            'message': 'ATT&CK sync finished',
            'results': results,
            'timestamp': _timestamp()
        }
    }

def handle_status(event: Dict[str, Any]) -> Dict[str, Any]:
    domains = _resolve_domains(str(event.get('domain', 'all')).lower())
    service = AttackSyncService()
    states = {}
    for domain in domains:
        state = service.get_status(domain)
        states[domain] = state.model_dump(mode='json') if state else None
    
    return {
        'statusCode': 200,
        'body': {
            'sync_state': states,
            'timestamp': _timestamp()
        }
    }

ACTIONS = {
    'sync': handle_sync,
    'status': handle_status,
}

def lambda_handler(event, context):
    """
    AWS Lambda handler for ATT&CK sync
    
    Event parameters:
    - action: 'sync' (default) or 'status'
    - domain: 'enterprise', 'mobile', 'ics' or 'all' (default: 'enterprise' for sync, 'all' for status)
    - full: boolean to ignore the stored watermark (default: False)
    - since: optional added_after timestamp overriding the stored watermark
    
    Environment Variables:
    - ATTACK_TAXII_BASE_URL / ATTACK_*_COLLECTION_ID: TAXII server and collections
    - DB_HOST, DB_SECRET_ARN, DB_NAME, DB_USER or DATABASE_URL: database connection
    """
    event = event or {}
    action = event.get('action', 'sync')
    
    handler = ACTIONS.get(action)
    if handler is None:
        return {
            'statusCode': 400,
            'body': {'error': f"Unknown action: {action}", 'timestamp': _timestamp()}
        }
    
    try:
        return handler(event)
    except ConfigurationError as e:
        logger.error(f"Invalid ATT&CK sync request: {e}")
        return {
            'statusCode': 400,
            'body': {'error': str(e), 'timestamp': _timestamp()}
        }
    except Exception as e:
        logger.error(f"Fatal error in ATT&CK sync: {e}", exc_info=True)
        return {
            'statusCode': 500,
            'body': {
                'error': 'Internal server error during ATT&CK sync',
                'message': str(e),
                'timestamp': _timestamp()
            }
        }
