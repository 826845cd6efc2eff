"""Rating tracker: aggregates financial and ESG ratings of stocks into comparable scores."""
