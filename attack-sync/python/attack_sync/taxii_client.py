"""
TAXII 2.1 client for the MITRE ATT&CK collections server
"""

import logging
from typing import Any, Dict, List, Optional

import requests
from pydantic import Field

from .config import AttackSyncSettings, get_settings
from .exceptions import PaginationLimitError, TransportError
from .schemas.base import BaseSchema

logger = logging.getLogger(__name__)

TAXII_MEDIA_TYPE = 'application/taxii+json;version=2.1'

class CollectionObjects(BaseSchema):
    collection_id: str
    objects: List[Dict[str, Any]] = Field(default_factory=list)
    pages: int = 0

class TaxiiClient:
    """Fetches ATT&CK collections page by page, following TAXII ``next`` cursors"""
    
    def __init__(self, settings: Optional[AttackSyncSettings] = None, session: Optional[requests.Session] = None):
        self.settings = settings or get_settings()
        self.session = session or requests.Session()
        self.session.headers.update({
            'Accept': TAXII_MEDIA_TYPE,
            'User-Agent': self.settings.user_agent,
        })
    
    def _get_json(self, url: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """GET a TAXII resource; any failure aborts the whole fetch"""
        try:
            response = self.session.get(url, params=params, timeout=self.settings.request_timeout)
        except requests.RequestException as e:
            raise TransportError(f"TAXII request failed for {url}: {e}") from e
        
        if not response.ok:
            raise TransportError(
                f"TAXII request failed ({response.status_code} {response.reason}) for {response.url or url}"
            )
        
        try:
            payload = response.json()
        except ValueError as e:
            raise TransportError(f"TAXII response from {response.url or url} is not valid JSON: {e}") from e
        
        if not isinstance(payload, dict):
            raise TransportError(f"TAXII response from {response.url or url} is not a JSON object")
        return payload
    
    def list_collections(self) -> List[Dict[str, Any]]:
        """List the collections advertised by the API root"""
        payload = self._get_json(f"{self.settings.taxii_base_url}/collections/")
        return payload.get('collections') or []
    
    def fetch_collection_objects(self, domain: str, added_after: Optional[str] = None) -> CollectionObjects:
        """
        Download every object of the domain's collection.
        
        ``added_after`` is only sent with the first request; later pages are requested
        with the server's ``next`` token alone. Omitting it fetches the full collection.
        """
        collection_id = self.settings.resolve_collection_id(domain)
        url = f"{self.settings.taxii_base_url}/collections/{collection_id}/objects/"
        params: Dict[str, str] = {'added_after': added_after} if added_after else {}
        
        objects: List[Dict[str, Any]] = []
        pages = 0
        
        while True:
            if pages >= self.settings.max_pages:
                raise PaginationLimitError(
                    f"TAXII pagination for {collection_id} exceeded {self.settings.max_pages} pages"
                )
            
            payload = self._get_json(url, params=params or None)
            pages += 1
            
            page_objects = payload.get('objects')
            if isinstance(page_objects, list):
                objects.extend(page_objects)
            logger.info(f"Fetched page {pages} of {domain} collection ({len(objects)} objects so far)")
            
            next_token = payload.get('next')
            if not (payload.get('more') and next_token):
                break
            params = {'next': next_token}
        
        logger.info(f"Downloaded {len(objects)} STIX objects for {domain} in {pages} page(s)")
        return CollectionObjects(collection_id=collection_id, objects=objects, pages=pages)
