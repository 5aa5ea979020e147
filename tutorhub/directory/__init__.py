"""
Student and teacher directory.

Resolves the profile rows that quiz assignments and ownership checks
refer to, either by profile id or by the owning user id.
"""
