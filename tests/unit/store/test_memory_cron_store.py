from __future__ import annotations

import pytest

from cronkeeper.cron.models import Cron, CronDescription
from cronkeeper.errors import NotFoundError
from cronkeeper.store import InMemoryCronStore


def _cron(name: str, rule_arn: str = "") -> Cron:
    description = CronDescription.model_validate(
        {"name": name, "schedule": "rate(1 day)", "container": {"image": "busybox"}}
    )
    return Cron(name=name, description=description, rule_arn=rule_arn)


@pytest.mark.asyncio
async def test_save_get_list_delete() -> None:
    store = InMemoryCronStore()
    await store.save(_cron("b", rule_arn="arn:rule/b"))
    await store.save(_cron("a"))
    assert await store.list_names() == ["a", "b"]
    assert (await store.get_by_rule_arn("arn:rule/b")).name == "b"
    await store.delete("b")
    with pytest.raises(NotFoundError):
        await store.get_by_name("b")
    with pytest.raises(NotFoundError):
        await store.delete("b")


@pytest.mark.asyncio
async def test_returned_crons_are_copies() -> None:
    store = InMemoryCronStore()
    await store.save(_cron("a"))
    fetched = await store.get_by_name("a")
    fetched.monitor_id = "changed"
    assert (await store.get_by_name("a")).monitor_id is None
