"""
gtbare runs the metasrv and frontend components of a database cluster as
local processes, and tells you when they are healthy.
"""

__version__ = "0.1.0"
