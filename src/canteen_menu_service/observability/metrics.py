"""Custom metrics for the canteen menu service."""

from opentelemetry import metrics

# Get meter for canteen menu service
meter = metrics.get_meter("canteen-menu")

# Menu mutation counters
menu_mutation_counter = meter.create_counter(
    name="menu_mutation_total",
    description="Total number of successful menu mutations by operation",
    unit="1",
)

menu_mutation_failure_counter = meter.create_counter(
    name="menu_mutation_failure_total",
    description="Total number of failed menu mutations by operation and error code",
    unit="1",
)

# Listing latency histogram
menu_list_duration_histogram = meter.create_histogram(
    name="menu_list_duration_seconds",
    description="Duration of menu listings served from the catalog store",
    unit="s",
)

auth_failure_counter = meter.create_counter(
    name="auth_failure_total",
    description="Total number of failed authentication attempts by flow",
    unit="1",
)

# Live viewer gauge
live_subscriptions = meter.create_up_down_counter(
    name="live_menu_subscriptions",
    description="Current number of open live menu subscriptions",
    unit="1",
)

api_error_counter = meter.create_counter(
    name="api_error_total",
    description="Total number of error responses by error code",
    unit="1",
)


def record_menu_mutation(operation: str) -> None:
    """Record a successful menu mutation.

    Args:
        operation: The mutation performed ("create", "update" or "delete")
    """
    menu_mutation_counter.add(1, {"operation": operation})


def record_menu_mutation_failure(operation: str, error_code: str) -> None:
    menu_mutation_failure_counter.add(1, {"operation": operation, "error_code": error_code})


def record_menu_list_duration(level: str, duration_seconds: float) -> None:
    """Record how long a store listing took.

    Args:
        level: Canteen level filter, or "all"
        duration_seconds: Duration in seconds
    """
    menu_list_duration_histogram.record(duration_seconds, {"level": level})


def record_auth_failure(flow: str) -> None:
    """Record a failed authentication attempt.

    Args:
        flow: The flow that failed (e.g., "sign_in", "reauthenticate")
    """
    auth_failure_counter.add(1, {"flow": flow})


def record_subscription_change(change: int) -> None:
    """Record a change in the number of open live subscriptions.

    Args:
        change: +1 when a subscription opens, -1 when it is cancelled
    """
    live_subscriptions.add(change)


def record_api_error(error_code: str, status_code: int) -> None:
    api_error_counter.add(1, {"error_code": error_code, "status_code": status_code})
