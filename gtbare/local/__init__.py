"""
Local package for gtbare.

This package holds the cluster configuration, the components that run as
local processes, and the supervisor that launches and stops them.
"""
