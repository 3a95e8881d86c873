"""
Database package for the predictive autoscaler

Provides MongoDB event storage and Redis-backed distributed locks.
"""

from .mongodb import ScalingEventDocument
from .repositories import MongoDBRepository, MongoScalingEventStore
from .redis_client import RedisLockRegistry

__all__ = [
    "ScalingEventDocument",
    "MongoDBRepository",
    "MongoScalingEventStore",
    "RedisLockRegistry",
]
