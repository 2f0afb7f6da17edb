"""
Core logic package.

Provides shared logic such as argument building, body limits and response conversion.
"""
