#!/usr/bin/env python3
"""
MongoDB repository classes for the predictive autoscaler
"""

import asyncio
import concurrent.futures
import logging
from datetime import datetime
from typing import List, Optional

from pymongo import MongoClient, ASCENDING
from pymongo.collection import Collection
from pymongo.errors import ConnectionFailure

from ..models import ScalingEvent
from ..services.base import ScalingEventStore
from .mongodb import ScalingEventDocument

logger = logging.getLogger(__name__)


class MongoDBRepository:
    """Base repository class with common MongoDB operations"""

    def __init__(self, connection_string: str = "mongodb://localhost:27017",
                 database_name: str = "predictive_autoscaler",
                 connection_timeout: int = 5, client: Optional[MongoClient] = None):
        self.connection_string = connection_string
        self.database_name = database_name
        self.connection_timeout = connection_timeout
        self.client = client
        self.db = None
        self.connect()

    def connect(self):
        """Establish MongoDB connection"""
        try:
            if self.client is None:
                self.client = MongoClient(
                    self.connection_string,
                    tz_aware=True,
                    serverSelectionTimeoutMS=self.connection_timeout * 1000
                )
            # Test connection
            self.client.admin.command('ping')
            self.db = self.client[self.database_name]
            logger.info(f"Connected to MongoDB: {self.database_name}")
            self._create_indexes()
        except ConnectionFailure as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    def close(self):
        """Close MongoDB connection"""
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed")

    def _create_indexes(self):
        """Create necessary indexes"""
        self.db.scaling_events.create_index([("resource_id", ASCENDING), ("timestamp", ASCENDING)])
        self.db.scaling_events.create_index([("success", ASCENDING)])
        logger.info("MongoDB indexes created")


class MongoScalingEventStore(MongoDBRepository, ScalingEventStore):
    """Scaling event audit store backed by the scaling_events collection"""

    def __init__(self, *args, max_workers: int = 2, **kwargs):
        super().__init__(*args, **kwargs)
        self.thread_pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="mongo-events"
        )

    @property
    def collection(self) -> Collection:
        return self.db.scaling_events

    async def append(self, event: ScalingEvent) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self.thread_pool, self._insert, event)

    async def query(self, resource_id: str, start_date: datetime, end_date: datetime) -> List[ScalingEvent]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.thread_pool, self._find, resource_id, start_date, end_date)

    def _insert(self, event: ScalingEvent) -> None:
        self.collection.insert_one(ScalingEventDocument.from_event(event).to_dict())
        logger.debug(f"Recorded scaling event {event.id} for {event.resource_id}")

    def _find(self, resource_id: str, start_date: datetime, end_date: datetime) -> List[ScalingEvent]:
        docs = self.collection.find({
            "resource_id": resource_id,
            "timestamp": {"$gte": start_date, "$lte": end_date}
        }).sort([("timestamp", ASCENDING), ("recorded_at", ASCENDING)])
        return [ScalingEventDocument.from_dict(doc).to_event() for doc in docs]
