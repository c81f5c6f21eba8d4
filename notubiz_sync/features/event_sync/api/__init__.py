"""
HTTP routes for the event sync feature.
"""
