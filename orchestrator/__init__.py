"""Multi-agent workflow orchestrator."""
