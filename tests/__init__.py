"""
Test suite for the chainlens turn-processing core.

Demonstrates testing patterns for the turn pipeline:
- Domain logic tests against in-memory fakes for model and tools
- Immutability of session and cache state
- Invariants of the diversity policy and the tool cache
- In-process API tests for the HTTP surface
"""
