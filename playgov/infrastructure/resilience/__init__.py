"""API Resilience Implementations.

Contains the call governor that serializes, spaces out and retries
calls against a rate-limited remote API.
Bounded Context: API Resilience
"""
