"""LLM streaming contract, retry policy and LangChain adapter."""
