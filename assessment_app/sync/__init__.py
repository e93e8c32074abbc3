"""
sync/ - State synchronization

Modules:
    change_tracker.py         - Pending changes keyed by change identity
    debounced_queue.py        - Keyed debounce on the asyncio loop
    retry.py                  - Timeout and exponential backoff
    state_store.py            - Application state, edits, navigation gating
    persistence_scheduler.py  - Partial saves, auto-save, forced saves
    session.py                - One editing session wiring it all together
"""
