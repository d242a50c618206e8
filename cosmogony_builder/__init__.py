"""
Cosmogony Builder - Administrative boundary hierarchy construction.

This package assembles administrative boundary relations into zones and
arranges them into a containment hierarchy (country, region, county, city...)
ready for serialization.
"""

__version__ = "1.0.0"
__author__ = "Data Analytics Team"
