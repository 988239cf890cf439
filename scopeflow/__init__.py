"""ScopeFlow: client project scoping and scope-change negotiation."""

__version__ = "1.0.0"
