"""
Command line entry point: ``attack-sync --domain enterprise [--full] [--since TS]``
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .config import get_settings
from .database import db_manager
from .exceptions import AttackSyncError
from .sync_service import AttackSyncService
from .taxii_client import TaxiiClient

logger = logging.getLogger(__name__)

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='attack-sync',
        description='Synchronize MITRE ATT&CK from its TAXII 2.1 server into the database'
    )
    parser.add_argument('--domain', default='enterprise', help='ATT&CK domain: enterprise, mobile, ics or all')
    parser.add_argument('--full', action='store_true', help='Ignore the stored watermark and fetch everything')
    parser.add_argument('--since', help='added_after timestamp to use instead of the stored watermark')
    parser.add_argument('--status', action='store_true', help='Print the stored sync state and exit')
    parser.add_argument('--list-collections', action='store_true', help='Print the TAXII collections and exit')
    parser.add_argument('--database-url', help='SQLAlchemy URL overriding DATABASE_URL / DB_* settings')
    parser.add_argument('--create-tables', action='store_true', help='Create missing tables before running')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    return parser

def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
    
    settings = get_settings()
    if args.list_collections:
        try:
            print(json.dumps(TaxiiClient(settings).list_collections(), indent=2))
        except AttackSyncError as e:
            logger.error(f"Could not list TAXII collections: {e}")
            return 1
        return 0
    
    if args.database_url:
        db_manager.configure(args.database_url)
    if args.create_tables:
        db_manager.create_tables()
    
    domains = settings.domains if args.domain == 'all' else [args.domain]
    service = AttackSyncService(settings=settings)
    
    if args.status:
        for domain in domains:
            try:
                state = service.get_status(domain)
            except AttackSyncError as e:
                logger.error(f"Could not read ATT&CK sync state for {domain}: {e}")
                return 1
            print(json.dumps({domain: state.model_dump(mode='json') if state else None}, indent=2))
        return 0
    
    exit_code = 0
    for domain in domains:
        try:
            summary = service.run_sync(domain=domain, full=args.full, since=args.since)
            print(json.dumps(summary.model_dump(mode='json'), indent=2))
        except AttackSyncError as e:
            logger.error(f"ATT&CK sync failed for {domain}: {e}")
            exit_code = 1
    return exit_code

if __name__ == '__main__':
    sys.exit(main())
