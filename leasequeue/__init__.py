"""
Lease Queue

A durable, at-least-once message queue on top of a relational store, giving
competing consumers visibility-timeout leases instead of a broker protocol.
"""

__version__ = "1.0.0"
