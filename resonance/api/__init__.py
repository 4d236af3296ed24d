"""HTTP host surface for driving the agent core out of process."""
