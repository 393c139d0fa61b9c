"""Timer domain services: transitions, wall-clock driver, rooms and fan-out.

This package contains the timer state machine and the pieces around it
that HTTP routes and socket handlers import, keeping transport concerns
separated from the timer mechanics.
"""
