import logging
import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from tortoise.expressions import Q

from boilerplate.core.errors import InternalError, NotFoundError
from boilerplate.models.guest import Guest
from boilerplate.repositories.guest import GuestRepository
from boilerplate.schemas.guest import GuestEntity, Sort, SortDirection
from boilerplate.testing.testing_mocks import AsyncContextManagerMock, MockQuerySet

MODULE = "boilerplate.repositories.database_repository"

LIVE = Q(deleted_at__isnull=True)


def guest_row(**overrides):
    row = {
        "id": uuid.uuid4(),
        "name": "John Snow",
        "address": None,
        "created_at": 1731452061534,
        "created_by": "creator",
        "updated_at": None,
        "updated_by": None,
        "deleted_at": None,
        "deleted_by": None,
    }
    row.update(overrides)
    return row


@pytest.fixture
def connections():
    with patch(f"{MODULE}.connections") as mock_connections:
        mock_connections.get.side_effect = lambda name: f"{name}-connection"
        yield mock_connections


@pytest.fixture
def repository():
    return GuestRepository(master_max_query_duration=10, slave_max_query_duration=10)


def test_schema_descriptor_comes_from_model(repository):
    assert repository.table == "guests"
    assert repository.pk == "id"
    assert set(repository.columns) == {
        "id", "name", "address", "created_at", "created_by",
        "updated_at", "updated_by", "deleted_at", "deleted_by",
    }


@pytest.mark.asyncio
async def test_count_reads_replica_by_default(repository, connections):
    queryset = MockQuerySet(result=4)
    with patch.object(Guest, "filter", MagicMock(return_value=queryset)) as mock_filter:
        assert await repository.count(LIVE) == 4

    mock_filter.assert_called_once_with(LIVE)
    assert queryset.called("using_db") == [("using_db", ("slave-connection",), {})]


@pytest.mark.asyncio
async def test_count_can_read_primary(repository, connections):
    queryset = MockQuerySet(result=1)
    with patch.object(Guest, "filter", MagicMock(return_value=queryset)):
        await repository.count(LIVE, use_master=True)

    assert queryset.called("using_db")[0][1] == ("master-connection",)


@pytest.mark.asyncio
async def test_find_all_builds_sorted_page(repository, connections):
    row = guest_row()
    queryset = MockQuerySet(result=[row])
    sorts = [Sort("name", SortDirection.ASC), Sort("address", SortDirection.DESC)]
    with patch.object(Guest, "filter", MagicMock(return_value=queryset)):
        entities = await repository.find_all(LIVE, sorts=sorts, take=5, skip=10)

    assert entities == [GuestEntity(**row)]
    assert queryset.called("order_by")[0][1] == ("name", "-address")
    assert queryset.called("offset")[0][1] == (10,)
    assert queryset.called("limit")[0][1] == (5,)
    assert set(queryset.called("values")[0][1]) == set(repository.columns)


@pytest.mark.asyncio
async def test_find_all_with_zero_take_returns_nothing(repository, connections):
    with patch.object(Guest, "filter", MagicMock()) as mock_filter:
        assert await repository.find_all(LIVE, take=0) == []

    mock_filter.assert_not_called()


@pytest.mark.asyncio
async def test_find_one_not_found(repository, connections):
    with patch.object(Guest, "filter", MagicMock(return_value=MockQuerySet(result=[]))):
        with pytest.raises(NotFoundError):
            await repository.find_one(Q(id=uuid.uuid4()))


@pytest.mark.asyncio
async def test_find_one_limits_to_one_row(repository, connections):
    row = guest_row()
    queryset = MockQuerySet(result=[row])
    with patch.object(Guest, "filter", MagicMock(return_value=queryset)):
        entity = await repository.find_one(Q(id=row["id"]))

    assert entity.id == row["id"]
    assert queryset.called("limit")[0][1] == (1,)


@pytest.mark.asyncio
async def test_driver_errors_become_internal(repository, connections):
    queryset = MockQuerySet(error=ConnectionError("connection refused"))
    with patch.object(Guest, "filter", MagicMock(return_value=queryset)):
        with pytest.raises(InternalError, match="connection refused"):
            await repository.count(LIVE)


@pytest.mark.asyncio
async def test_slow_query_logs_warning_without_failing(connections, caplog):
    repository = GuestRepository(master_max_query_duration=-1, slave_max_query_duration=-1)
    with patch.object(Guest, "filter", MagicMock(return_value=MockQuerySet(result=2))):
        with caplog.at_level(logging.WARNING, logger=MODULE):
            assert await repository.count(LIVE) == 2

    assert "Slow query" in caplog.text


@pytest.mark.asyncio
async def test_create_writes_all_columns_on_primary(repository, connections):
    entity = GuestEntity(**guest_row(address="North"))
    with patch.object(Guest, "create", AsyncMock()) as mock_create:
        await repository.create(entity)

    kwargs = mock_create.call_args.kwargs
    assert kwargs.pop("using_db") == "master-connection"
    assert kwargs == entity.model_dump()


@pytest.mark.asyncio
async def test_update_sets_every_column_but_the_key(repository, connections):
    entity = GuestEntity(**guest_row(name="Jon"))
    queryset = MockQuerySet(result=1)
    condition = Q(id=entity.id, deleted_at__isnull=True)
    with patch.object(Guest, "filter", MagicMock(return_value=queryset)) as mock_filter:
        assert await repository.update(entity, condition) == 1

    mock_filter.assert_called_once_with(condition)
    values = queryset.called("update")[0][2]
    assert "id" not in values
    assert values["name"] == "Jon"
    assert queryset.called("using_db")[0][1] == ("master-connection",)


@pytest.mark.asyncio
async def test_delete_runs_on_primary(repository, connections):
    queryset = MockQuerySet(result=1)
    with patch.object(Guest, "filter", MagicMock(return_value=queryset)):
        assert await repository.delete(Q(id=uuid.uuid4())) == 1

    assert queryset.called("delete")
    assert queryset.called("using_db")[0][1] == ("master-connection",)


@pytest.mark.asyncio
async def test_transaction_routes_every_call_through_its_connection(repository, connections):
    transaction = AsyncContextManagerMock("tx-connection")
    queryset = MockQuerySet(result=3)
    with patch(f"{MODULE}.in_transaction", MagicMock(return_value=transaction)) as mock_in_transaction:
        with patch.object(Guest, "filter", MagicMock(return_value=queryset)):
            async with repository.begin_transaction() as tx_repository:
                await tx_repository.count(LIVE)

    mock_in_transaction.assert_called_once_with("master")
    assert queryset.called("using_db")[0][1] == ("tx-connection",)
    assert transaction.exc_type is None


@pytest.mark.asyncio
async def test_transaction_failure_is_rolled_back_and_wrapped(repository, connections):
    transaction = AsyncContextManagerMock("tx-connection")
    with patch(f"{MODULE}.in_transaction", MagicMock(return_value=transaction)):
        with pytest.raises(InternalError):
            async with repository.begin_transaction():
                raise RuntimeError("deadlock detected")

    assert transaction.exc_type is RuntimeError


@pytest.mark.asyncio
async def test_transaction_keeps_taxonomy_errors(repository, connections):
    transaction = AsyncContextManagerMock("tx-connection")
    with patch(f"{MODULE}.in_transaction", MagicMock(return_value=transaction)):
        with pytest.raises(NotFoundError):
            async with repository.begin_transaction():
                raise NotFoundError()
