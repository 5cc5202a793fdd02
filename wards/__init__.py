"""Ward room allocation application.

Patients, rooms and the allocations linking them, plus the consistency
gateway that keeps room occupancy and allocation status in agreement.
"""
