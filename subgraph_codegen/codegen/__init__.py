"""Type generation pipeline: IR, mappers, emitter, orchestrator and watcher."""
