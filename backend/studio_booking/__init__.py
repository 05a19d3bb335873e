"""Studio booking service: classes, subscriptions, waitlists."""

__version__ = "1.0.0"
