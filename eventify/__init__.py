"""Eventify ticketing core: reservations, points and promotions."""
