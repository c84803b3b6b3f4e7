"""Medicare Provider Claims Cleaning and Ranking Pipeline.

Cleans a flat extract of Medicare provider billing records (one row per
provider and HCPCS procedure code), flags per-procedure statistical outliers,
and ranks providers by total claim amount within specialty and state peer
groups to feed a provider analytics dashboard.
"""

__version__ = "1.0.0"
