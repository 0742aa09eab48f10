"""Prefixed ID generation for locally minted records and jobs."""

import uuid

SUBSCRIPTION_PREFIX = "sub_"
PAYMENT_PREFIX = "pay_"
ANALYTICS_EVENT_PREFIX = "evt_"
JOB_PREFIX = "job_"


def generate_id(prefix: str) -> str:
    """Generate a prefixed unique ID.

    Args:
        prefix: The prefix (e.g., "pay_", "job_").

    Returns:
        A string like "pay_a1b2c3d4e5f6a7b8".
    """
    return f"{prefix}{uuid.uuid4().hex[:16]}"
