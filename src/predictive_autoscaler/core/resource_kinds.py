#!/usr/bin/env python3
"""
Resource-kind identifiers and the metric catalogues used for each kind
"""

from typing import Dict, List, Tuple

VIRTUAL_MACHINE_SCALE_SET = "microsoft.compute/virtualmachinescalesets"
APP_SERVICE_PLAN = "microsoft.web/serverfarms"
MANAGED_CLUSTER = "microsoft.containerservice/managedclusters"
KUBERNETES_DEPLOYMENT = "kubernetes/deployments"

DEFAULT_METRICS = ["Percentage CPU"]

# Metrics forecast for each prediction cycle
RELEVANT_METRICS: Dict[str, List[str]] = {
    VIRTUAL_MACHINE_SCALE_SET: [
        "Percentage CPU", "Network In", "Network Out", "Disk Read Bytes", "Disk Write Bytes"
    ],
    APP_SERVICE_PLAN: [
        "CpuPercentage", "MemoryPercentage", "HttpQueueLength", "DiskQueueLength"
    ],
    MANAGED_CLUSTER: [
        "node_cpu_usage_percentage", "node_memory_usage_percentage",
        "node_network_in_bytes", "node_network_out_bytes"
    ],
    KUBERNETES_DEPLOYMENT: [
        "cpu_usage_percentage", "memory_usage_percentage"
    ],
}

# (primary, secondary) metrics proposed by the configuration optimizer
OPTIMAL_METRICS: Dict[str, Tuple[List[str], List[str]]] = {
    VIRTUAL_MACHINE_SCALE_SET: (
        ["Percentage CPU", "Available Memory Bytes"],
        ["Network In Total", "Disk Read Operations/Sec"]
    ),
    APP_SERVICE_PLAN: (
        ["CpuPercentage", "MemoryPercentage"],
        ["HttpQueueLength", "Requests"]
    ),
    MANAGED_CLUSTER: (
        ["node_cpu_usage_percentage", "node_memory_usage_percentage"],
        ["node_network_in_bytes"]
    ),
    KUBERNETES_DEPLOYMENT: (
        ["cpu_usage_percentage", "memory_usage_percentage"],
        []
    ),
}


def normalize_kind(kind: str) -> str:
    """Resource kinds compare case-insensitively"""
    return (kind or "").strip().lower()


def relevant_metrics(kind: str) -> List[str]:
    return list(RELEVANT_METRICS.get(normalize_kind(kind), DEFAULT_METRICS))


def optimal_metrics(kind: str) -> Tuple[List[str], List[str]]:
    primary, secondary = OPTIMAL_METRICS.get(normalize_kind(kind), (DEFAULT_METRICS, []))
    return list(primary), list(secondary)


def primary_metric_name(metric_names: List[str]) -> str:
    """
    Pick the CPU-like metric used to drive scaling decisions

    Args:
        metric_names: Candidate metric names

    Returns:
        First name containing "cpu" (case-insensitive), else the first name, else ""
    """
    for name in metric_names:
        if "cpu" in name.lower():
            return name
    return metric_names[0] if metric_names else ""
