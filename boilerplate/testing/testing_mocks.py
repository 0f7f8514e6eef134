from unittest.mock import AsyncMock, MagicMock

from boilerplate.services.guest_service import EventSetting, GuestService


class AsyncContextManagerMock:
    """Mocks 'async with ... as value:' (transactions, clients) and records how the block ended."""

    def __init__(self, value=None):
        self.value = value if value is not None else object()
        self.exc_type = None
        self.exited = False

    async def __aenter__(self):
        return self.value

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.exited = True
        self.exc_type = exc_type
        return False


class MockQuerySet:
    """
    Chainable stand-in for a Tortoise QuerySet. Every method call returns the same
    object and awaiting it yields `result`; calls are recorded for assertions.
    """

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return method

    def __await__(self):
        async def _resolve():
            if self.error is not None:
                raise self.error
            return self.result

        return _resolve().__await__()

    def called(self, name):
        return [call for call in self.calls if call[0] == name]


def mock_guest_repository():
    """Guest repository mock; begin_transaction yields `repository.tx`, a transaction-bound mock."""
    repository = MagicMock()
    repository.count = AsyncMock(return_value=0)
    repository.find_all = AsyncMock(return_value=[])
    repository.find_one = AsyncMock()
    tx_repository = MagicMock()
    tx_repository.create = AsyncMock()
    tx_repository.update = AsyncMock(return_value=1)
    repository.transaction_context = AsyncContextManagerMock(tx_repository)
    repository.begin_transaction = MagicMock(return_value=repository.transaction_context)
    repository.tx = tx_repository
    return repository


def mock_cache_repository():
    cache = MagicMock()
    for name in ("get", "get_list", "get_count", "set", "set_list", "set_count", "delete", "keys", "lock", "unlock"):
        setattr(cache, name, AsyncMock())
    cache.keys.return_value = []
    return cache


def make_guest_service(cache_enable=True, events_enable=True, **overrides) -> GuestService:
    """GuestService wired to mocks only; pass a repository to override one."""
    kwargs = dict(
        guest_repository=mock_guest_repository(),
        guest_cache_repository=mock_cache_repository(),
        guest_event_producer_repository=MagicMock(publish=AsyncMock()),
        webhook_repository=MagicMock(send_guest_event=AsyncMock()),
        cache_enable=cache_enable,
        cache_key_format="test:guests:{}",
        cache_duration=60,
        created_event=EventSetting(events_enable, "guest.created"),
        deleted_event=EventSetting(events_enable, "guest.deleted"),
        updated_event=EventSetting(events_enable, "guest.updated"),
    )
    kwargs.update(overrides)
    return GuestService(**kwargs)
