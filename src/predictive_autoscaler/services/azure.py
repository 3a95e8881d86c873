#!/usr/bin/env python3
"""
Azure Resource Manager REST client and ARM-backed resource directory
"""

import asyncio
import concurrent.futures
import logging
from typing import Any, Dict, Optional

import requests

from ..config.settings import settings, AzureSettings
from ..models import ResourceInfo
from .base import ResourceDirectory

logger = logging.getLogger(__name__)


class ArmClient:
    """Thin synchronous wrapper over the ARM REST API"""

    def __init__(self, azure_settings: Optional[AzureSettings] = None,
                 session: Optional[requests.Session] = None):
        """
        Initialize ARM client

        Args:
            azure_settings: Management URL, bearer token and timeouts
            session: Optional pre-configured requests session
        """
        self.settings = azure_settings or settings.azure
        self.session = session or requests.Session()

    def _url(self, resource_id: str) -> str:
        return f"{self.settings.management_url.rstrip('/')}/{resource_id.lstrip('/')}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.access_token:
            headers["Authorization"] = f"Bearer {self.settings.access_token}"
        return headers

    def get(self, resource_id: str, api_version: str) -> Optional[Dict[str, Any]]:
        """
        GET a resource

        Returns:
            Resource JSON, or None when ARM answers 404
        """
        response = self.session.get(
            self._url(resource_id),
            params={"api-version": api_version},
            headers=self._headers(),
            timeout=self.settings.request_timeout
        )
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    def patch(self, resource_id: str, api_version: str, body: Dict[str, Any]) -> Dict[str, Any]:
        response = self.session.patch(
            self._url(resource_id),
            params={"api-version": api_version},
            headers=self._headers(),
            json=body,
            timeout=self.settings.request_timeout
        )
        response.raise_for_status()
        return response.json() if response.content else {}

    def put(self, resource_id: str, api_version: str, body: Dict[str, Any]) -> Dict[str, Any]:
        response = self.session.put(
            self._url(resource_id),
            params={"api-version": api_version},
            headers=self._headers(),
            json=body,
            timeout=self.settings.request_timeout
        )
        response.raise_for_status()
        return response.json() if response.content else {}


class ArmResourceDirectory(ResourceDirectory):
    """Resolves ARM resource ids through the generic resources endpoint"""

    def __init__(self, client: Optional[ArmClient] = None, max_workers: int = 4):
        self.client = client or ArmClient()
        self.thread_pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="arm-directory"
        )

    async def get_resource(self, resource_id: str) -> Optional[ResourceInfo]:
        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(
            self.thread_pool,
            self.client.get,
            resource_id,
            self.client.settings.resources_api_version
        )
        if data is None:
            logger.warning(f"Resource {resource_id} not found in Resource Manager")
            return None

        return ResourceInfo(
            id=data.get("id", resource_id),
            kind=(data.get("type") or "").lower(),
            name=data.get("name", resource_id.rsplit("/", 1)[-1]),
            metadata={
                "location": data.get("location"),
                "sku": data.get("sku") or {},
                "tags": data.get("tags") or {},
            }
        )
