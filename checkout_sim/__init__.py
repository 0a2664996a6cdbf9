"""
checkout_sim package initializer.

This package contains the checkout discrete-event engine (event list,
routing, balking, metrics), the M/M/c queueing formulas it is checked
against, and the Q-learning layout advisor.
"""
__all__ = [
    "variates", "queues", "entities", "arrivals", "stations", "policies",
    "network", "metrics", "queueing", "store_data", "config", "simulation",
    "agent", "logger",
]
