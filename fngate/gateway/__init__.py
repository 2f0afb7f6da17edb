"""
Invocation gateway service.
"""
