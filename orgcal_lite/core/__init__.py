"""Core infrastructure for orgcal_lite: configuration, async helpers, timezones and health."""
