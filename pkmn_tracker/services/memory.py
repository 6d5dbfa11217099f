"""Process memory reporting for long sync runs."""

import logging

import psutil

log = logging.getLogger(__name__)


def get_memory_usage() -> dict:
    """Resident and virtual size of this process, in MB."""
    info = psutil.Process().memory_info()
    return {
        "rss_mb": info.rss / (1024 * 1024),
        "vms_mb": info.vms / (1024 * 1024),
    }


def log_memory(stage: str):
    usage = get_memory_usage()
    log.info("Memory [%s]: rss %.0f MB, vms %.0f MB", stage, usage["rss_mb"], usage["vms_mb"])
