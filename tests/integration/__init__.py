"""
Guide Registry Integration Tests

Tests covering:
- Full flow: load -> validate -> resolve -> cache
- Concurrent resolve and reload
- HTTP and command line consumers
"""
