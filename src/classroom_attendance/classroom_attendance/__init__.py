"""Classroom Attendance package.

This package is organized by feature modules (sessions, attendance, reports, ...)
with a thin Flask controller layer and service/repository layers underneath.
"""
