"""Root conftest — shared test configuration."""

import os

# Ensure tests don't accidentally use real API keys or the public dog API
os.environ.setdefault("ANTHROPIC_API_KEY", "sk-ant-test-fake-key")
os.environ.setdefault("DOG_API_BASE_URL", "https://dog.test/api")
