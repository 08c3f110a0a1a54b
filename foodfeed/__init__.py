"""
Food discovery service: a location-aware restaurant video feed with
bookings, threaded comments, reviews and notifications on top of a
hosted backend.
"""
