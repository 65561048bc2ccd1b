"""
MITRE ATT&CK catalog sync
Pulls ATT&CK collections over TAXII 2.1 and merges them into the relational store
"""

from .database import DatabaseManager, db_session
from .models import *
from .repositories import *
from .schemas import *
from .exceptions import *
from .config import AttackSyncSettings, get_settings
from .taxii_client import TaxiiClient, CollectionObjects
from .stix_parser import parse_bundle, classify_relationship, RelationshipMapping
from .sync_service import AttackSyncService, run_attack_sync

__version__ = "1.0.0"
