from __future__ import annotations

import pytest

VALID_ARTIFACT = '''---
name: acme
description: Acme HTTP helpers for Python
version: 1.2.0
ecosystem: python
license: MIT
---

# acme

Acme wraps a small HTTP client with retry, timeout and error handling helpers.
It is designed for scripts and services that need predictable behaviour when
talking to flaky upstream APIs. Every example below is self-contained.

## Imports

```python
import acme
from acme import Client, AcmeError
```

## Core Patterns

### Basic Client Usage

Create a simple client and fetch a resource.

```python
from acme import Client

client = Client()
print(client.get("/status"))
```

### Configuring Timeouts

Set up the client with explicit configuration options.

```python
from acme import Client

client = Client(timeout=5.0, retries=2)
print(client.timeout)
```

### Handling Errors

Catch the library exception when a request fails.

```python
from acme import AcmeError, Client

try:
    Client().get("/missing")
except AcmeError as exc:
    print(exc)
```

## Pitfalls

### Wrong: reusing a closed client

```python
client.close()
client.get("/status")
```

### Right: open a fresh client

```python
client = Client()
client.get("/status")
```
'''


@pytest.fixture
def valid_artifact() -> str:
    return VALID_ARTIFACT


@pytest.fixture
def artifact_without_pitfalls() -> str:
    return VALID_ARTIFACT.split("## Pitfalls")[0]
