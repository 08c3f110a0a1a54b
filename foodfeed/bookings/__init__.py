"""
Table bookings.

Responsibilities:
- Normalise booking rows into one ``BookingRecord`` shape.
- Split bookings into upcoming and past windows per viewer role.
- Create bookings and change their status through the backend.
"""
