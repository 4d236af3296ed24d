"""Tool names, built-in tools, registry and the heuristic tool-call detector."""
