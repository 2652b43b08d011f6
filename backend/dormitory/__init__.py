"""Dormitory administration backend.

This package exposes the service, repository and model modules used by
the FastAPI application: students, rooms, settlements and payments over
a relational database. Individual modules contain the concrete
implementations and documentation.
"""
