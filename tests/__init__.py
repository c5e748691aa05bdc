"""searchfeed test suite.

Test organization:
- unit/test_query.py: search URL construction
- unit/test_classify.py: response classification and the stale-cursor predicate
- unit/test_source.py: tick pipeline, cursor recovery and the run loop
- unit/test_cursor_store.py: cache resources and the cursor adapter
- unit/test_fetcher.py, test_transport.py, test_auth.py: HTTP, retries and OAuth2
- unit/test_scheduler.py, test_rate_limiter.py: timing policies and rate limits
- unit/test_config.py, test_builder.py, test_cli.py: configuration and wiring

Shared fakes (fake search API, clocks, failing cache) live in helpers.py.
"""
