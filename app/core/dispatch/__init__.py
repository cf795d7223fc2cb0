# app/core/dispatch/__init__.py
"""
Dispatch Layer - job lifecycle and mileage.

This package handles technician-facing operations:
- ``geo`` - haversine distance and unit conversion
- ``models`` - service requests, acceptance logs, mileage entries
- ``service`` - create / accept / round-trip / mileage-log operations

Dispatch code must NOT import employee-management modules.
"""
