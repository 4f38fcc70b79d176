"""Class2Class program store and aggregation engine."""

__version__ = "1.0.0"
