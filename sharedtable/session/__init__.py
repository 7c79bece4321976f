"""
Seat and local-player management.
"""

from sharedtable.session.seats import SeatManager

__all__ = ["SeatManager"]
