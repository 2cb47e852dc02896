"""auth/ -- Authentication and authorization package for BloodLink.

Layer rule: auth/ imports stdlib, third-party libraries, core/, and audit/
(flows.py writes the audit trail). It does NOT import from api/ or client/.
api/ imports from auth/, not the other way around.
"""
