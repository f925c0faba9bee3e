"""Command-line interface adapters.

Provides CLI commands for operating the registry:
- parcel commands: register, show, update, change status, search
- request commands: create, show (by code or case file), list, change status,
  add document, archive
- citizen commands: register, show, list, update contact, verify
- stats and attention reports
"""
