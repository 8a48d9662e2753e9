"""Dependency injection container for the orgcal_lite server."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class AppDependencies:
    """Container for all application dependencies.

    Built once at startup and handed to the route registration functions, which
    keeps handlers free of module-level state and easy to test.
    """

    # Configuration
    config: Any
    default_timezone: str
    identity_header: str
    max_events: int
    max_range_days: int

    # Collaborators
    store: Any
    sync_client: Any
    capabilities: Any

    # Business logic components
    aggregator: Any
    member_aggregator: Any
    series_resolver: Any

    # Infrastructure
    health_tracker: Any

    # Utility functions
    time_provider: Any
    get_config_value: Any
    get_system_diagnostics: Any


class DependencyContainer:
    """Factory for building application dependencies."""

    @staticmethod
    def build_dependencies(config: Any, store: Any, sync_client: Any) -> AppDependencies:
        """Build all application dependencies.

        Schema capabilities are resolved here, once, from the store and any
        explicit configuration override.

        Args:
            config: Application configuration
            store: CalendarStore implementation
            sync_client: CalendarSyncClient implementation

        Returns:
            AppDependencies container with all dependencies initialized
        """
        from orgcal_lite.core.config_manager import (
            DEFAULT_ADAPTER_TIMEOUT_SECONDS,
            DEFAULT_IDENTITY_HEADER,
            MAX_DATE_RANGE_DAYS,
            MAX_EVENTS,
            get_config_value,
        )
        from orgcal_lite.core.health_tracker import HealthTracker, get_system_diagnostics
        from orgcal_lite.core.timezone_utils import (
            get_default_timezone,
            normalize_timezone_name,
            now_utc,
        )
        from orgcal_lite.domain.adapters import (
            FeedAdapter,
            ScheduleAdapter,
            build_default_adapters,
        )
        from orgcal_lite.domain.aggregator import TimelineAggregator
        from orgcal_lite.domain.series import SeriesResolver

        health_tracker = HealthTracker()

        capabilities = store.describe_capabilities()
        recurrence_override = get_config_value(config, "events_recurrence_column")
        if recurrence_override is not None:
            capabilities = capabilities.model_copy(
                update={"events_recurrence_column": bool(recurrence_override)}
            )

        timeout = float(
            get_config_value(config, "adapter_timeout_seconds", DEFAULT_ADAPTER_TIMEOUT_SECONDS)
        )

        aggregator = TimelineAggregator(
            build_default_adapters(store, capabilities),
            timeout=timeout,
            health_tracker=health_tracker,
        )
        member_aggregator = TimelineAggregator(
            [FeedAdapter(store, capabilities), ScheduleAdapter(store, capabilities)],
            timeout=timeout,
            health_tracker=health_tracker,
        )

        configured_tz = get_config_value(config, "default_timezone")
        default_timezone = normalize_timezone_name(configured_tz) or get_default_timezone()

        return AppDependencies(
            config=config,
            default_timezone=default_timezone,
            identity_header=get_config_value(config, "identity_header", DEFAULT_IDENTITY_HEADER),
            max_events=int(get_config_value(config, "max_events", MAX_EVENTS)),
            max_range_days=int(get_config_value(config, "max_range_days", MAX_DATE_RANGE_DAYS)),
            store=store,
            sync_client=sync_client,
            capabilities=capabilities,
            aggregator=aggregator,
            member_aggregator=member_aggregator,
            series_resolver=SeriesResolver(store),
            health_tracker=health_tracker,
            time_provider=now_utc,
            get_config_value=get_config_value,
            get_system_diagnostics=get_system_diagnostics,
        )
