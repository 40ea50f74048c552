"""
Browser sessions for browserhost.

Provides Playwright-based session management with:
- Multiple isolated sessions sharing one lazily started browser
- Per-session serialization of navigate, screenshot, fetch and close
- A fetch bridge that issues requests from inside a session's page
"""
