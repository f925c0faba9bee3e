"""Land-titling registry: citizens, cadastral parcels, and titling requests."""
