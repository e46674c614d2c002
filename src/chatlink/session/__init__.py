"""
Session lifecycle for chatlink.

- state: readiness states of a session
- backoff: capped exponential retry delay
- scheduler: injectable sleep/spawn used by the restart loop
- artifacts: on-disk session directory removal
- manager: the lifecycle state machine
"""
