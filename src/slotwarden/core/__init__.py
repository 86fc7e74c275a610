"""Core domain package for slotwarden.

Core contains capacity planning, eviction, classification and dispatch logic
without any gateway or HTTP-specific code, keeping the business logic portable.
"""
