"""Vehicle damage triage: normalization, estimation and routing."""
