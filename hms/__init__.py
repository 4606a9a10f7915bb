"""
Hospital management app: tenants, staff, credentials and clinical records.
"""
