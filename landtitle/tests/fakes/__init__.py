"""Fake implementations of core driven ports for testing.

These in-memory implementations allow core domain logic to be tested
without external dependencies:

- FakeParcelRepository: In-memory parcel persistence
- FakeTitlingRequestRepository: In-memory requests and per-year sequences
- FakeCitizenRepository: In-memory citizen persistence
- FakeAlertNotifier: Captured alerts for assertion
"""

from .notification import FakeAlertNotifier
from .store import (
    FakeCitizenRepository,
    FakeParcelRepository,
    FakeTitlingRequestRepository,
)

__all__ = [
    "FakeAlertNotifier",
    "FakeCitizenRepository",
    "FakeParcelRepository",
    "FakeTitlingRequestRepository",
]
