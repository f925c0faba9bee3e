"""External adapters for the land-titling registry.

This package contains all external dependencies (SQLite, PostgreSQL,
HTTP servers, etc.) and provides implementations of the core port interfaces.

Adapter Organization:

- store/: Repository adapters for parcels, requests, and citizens
- notification/: Adapters for delivering follow-up alerts
- cli/: Command-line interface and management commands
- api/: JSON HTTP API over the driving ports
"""
