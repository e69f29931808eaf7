"""
funnelgraph - funnel graphs and path enumerations from session aggregations.
"""

__version__ = "1.0.0"
