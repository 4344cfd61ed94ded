"""
Core components of the SQL agent service: exceptions, interfaces and tools.
"""
