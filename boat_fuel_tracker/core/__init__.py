"""
Core modules for Boat Fuel Tracker.

This package contains the business rules: the cost invariant,
statistics aggregation, access control and the service facade.
"""
