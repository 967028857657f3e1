"""Exceptions raised by the dispatch advisor."""


class AdvisorError(Exception):
    """Base exception for dispatch advisor errors."""
    pass


class ConfigError(AdvisorError):
    """Invalid or unreadable advisor configuration."""
    pass


class DashboardError(AdvisorError):
    """Failure talking to the dashboard REST API."""
    pass


class StrategyError(AdvisorError):
    """Unknown strategy, or one the site's tariff cannot support."""
    pass
