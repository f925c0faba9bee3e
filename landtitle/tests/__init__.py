"""Test suite for the land-titling registry.

Organized into three categories:

1. core/: Unit tests for core domain logic
   - Value objects, aggregates and their state machines
   - Services exercised against in-memory fakes

2. adapters/: Integration tests for adapter implementations
   - SQLite against a temporary database, PostgreSQL against mocked pools
   - CLI handler, HTTP server and stdout notifier

3. fakes/: Port implementations for testing
   - In-memory repositories and a capturing alert notifier
"""
