"""CPMM pricing core for binary prediction markets, with freeze-smoothed mirrored odds."""
