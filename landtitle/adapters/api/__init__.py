"""HTTP adapter exposing the driving ports as JSON endpoints."""
