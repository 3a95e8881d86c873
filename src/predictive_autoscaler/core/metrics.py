#!/usr/bin/env python3
"""
Prometheus-backed telemetry source
"""

import asyncio
import concurrent.futures
import logging
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional

import requests

from ..config.settings import settings, PrometheusSettings
from ..models import MetricDataPoint
from ..services.base import TelemetrySource

logger = logging.getLogger(__name__)

# Prometheus refuses range queries returning more than 11000 points per series
MAX_POINTS_PER_SERIES = 10000

DEFAULT_QUERY_TEMPLATES = {
    "cpu_usage_percentage": (
        '100 * sum(rate(container_cpu_usage_seconds_total{{namespace="{namespace}",pod=~"{name}-.*",container!=""}}[5m]))'
        ' / sum(kube_pod_container_resource_requests{{namespace="{namespace}",pod=~"{name}-.*",resource="cpu"}})'
    ),
    "memory_usage_percentage": (
        '100 * sum(container_memory_working_set_bytes{{namespace="{namespace}",pod=~"{name}-.*",container!=""}})'
        ' / sum(kube_pod_container_resource_requests{{namespace="{namespace}",pod=~"{name}-.*",resource="memory"}})'
    ),
}

_STEP_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_step(step: str) -> int:
    """Convert a Prometheus duration such as '5m' to seconds"""
    match = re.fullmatch(r"(\d+)([smhd]?)", step.strip())
    if not match:
        raise ValueError(f"Invalid Prometheus step: {step}")
    return int(match.group(1)) * _STEP_UNITS[match.group(2) or "s"]


class PrometheusTelemetrySource(TelemetrySource):
    """Fetches metric history through the Prometheus query_range API"""

    def __init__(self, prometheus_settings: Optional[PrometheusSettings] = None,
                 query_templates: Optional[Dict[str, str]] = None,
                 session: Optional[requests.Session] = None, max_workers: int = 4):
        """
        Initialize telemetry source

        Args:
            prometheus_settings: URL, timeout and default step
            query_templates: PromQL templates keyed by metric name; they may use
                {resource_id}, {namespace} and {name}
            session: Optional requests session
            max_workers: Threads available for concurrent queries
        """
        self.settings = prometheus_settings or settings.prometheus
        self.prometheus_url = self.settings.url.rstrip("/")
        self.query_templates = dict(DEFAULT_QUERY_TEMPLATES)
        self.query_templates.update(query_templates or {})
        self.session = session or requests.Session()
        self.thread_pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="prometheus-query"
        )

    def build_query(self, resource_id: str, metric_name: str) -> str:
        namespace, name = "", resource_id
        if resource_id.count("/") == 1:
            namespace, name = resource_id.split("/")
        template = self.query_templates.get(metric_name)
        if template is None:
            series = re.sub(r"[^a-zA-Z0-9_:]", "_", metric_name).lower()
            template = series + '{{resource_id="{resource_id}"}}'
        return template.format(resource_id=resource_id, namespace=namespace, name=name)

    def step_seconds(self, start_time: datetime, end_time: datetime) -> int:
        span = max(0.0, (end_time - start_time).total_seconds())
        return max(parse_step(self.settings.step), int(span // MAX_POINTS_PER_SERIES) + 1)

    async def get_metrics(self, resource_id: str, metric_name: str,
                          start_time: datetime, end_time: datetime) -> List[MetricDataPoint]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self.thread_pool,
            self._query_range,
            self.build_query(resource_id, metric_name),
            start_time,
            end_time
        )

    def _query_range(self, query: str, start_time: datetime, end_time: datetime) -> List[MetricDataPoint]:
        """Query Prometheus and average multiple series per timestamp"""
        try:
            response = self.session.get(
                f"{self.prometheus_url}/api/v1/query_range",
                params={
                    'query': query,
                    'start': start_time.timestamp(),
                    'end': end_time.timestamp(),
                    'step': self.step_seconds(start_time, end_time)
                },
                timeout=self.settings.query_timeout
            )
            response.raise_for_status()
            data = response.json()

            if data['status'] != 'success':
                logger.error(f"Prometheus query failed: {data.get('error', 'Unknown error')}")
                return []

            samples: Dict[float, List[float]] = {}
            for series in data['data']['result']:
                for timestamp, value in series.get('values', []):
                    samples.setdefault(float(timestamp), []).append(float(value))

            return [
                MetricDataPoint(
                    timestamp=datetime.fromtimestamp(ts, tz=timezone.utc),
                    value=sum(values) / len(values)
                )
                for ts, values in sorted(samples.items())
            ]

        except requests.exceptions.RequestException as e:
            logger.error(f"Error querying Prometheus: {e}")
            return []
        except (KeyError, ValueError) as e:
            logger.error(f"Error processing Prometheus response: {e}")
            return []
