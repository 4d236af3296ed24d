"""
Resonance Agent - the agentic chat core of the Resonance editor.

This package provides the tool-calling orchestration loop behind the editor's
chat sidebar:
- Per-thread message state with checkpoints and rollback
- Streaming LLM consumption with incremental tool-call parsing
- Tool approval, execution, rejection and interruption
- Retry with exponential backoff for transient provider errors
"""

__version__ = "0.4.0"
