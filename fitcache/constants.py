"""
fitcache Global Constants

Well-known domain names used by the tracker screens and their freshness
presets.
"""

from typing import Callable, Dict

from .domain.cache.value_objects import FreshnessPolicy

# Domain names
TODAY_TOTALS = "today-totals"
PROGRESS = "progress"
SLEEP_LOGS = "sleep-logs"
HYDRATION = "hydration"
WEIGHT_LOGS = "weight-logs"

DOMAIN_POLICY_PRESETS: Dict[str, Callable[[], FreshnessPolicy]] = {
    TODAY_TOTALS: FreshnessPolicy.today_totals,
    PROGRESS: FreshnessPolicy.progress,
    SLEEP_LOGS: FreshnessPolicy.sleep,
    HYDRATION: FreshnessPolicy.hydration,
    WEIGHT_LOGS: FreshnessPolicy.weight,
}

# Application Constants
APP_NAME = "fitcache"
APP_VERSION = "0.1.0"
