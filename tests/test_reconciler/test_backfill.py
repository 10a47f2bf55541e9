"""Tests for the backfill Reconciler."""

import asyncio
from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio

from profile_engine.errors import (
    PermanentStoreError,
    StoreUnavailableError,
    TransientStoreError,
)
from profile_engine.identity.base import IdentityStore
from profile_engine.identity.local import LocalIdentityStore
from profile_engine.models.identity import Identity
from profile_engine.models.outcome import ProvisionOutcome
from profile_engine.models.profile import Profile, Role
from profile_engine.profiles.sqlite import SqliteProfileStore
from profile_engine.provisioning.provisioner import Provisioner
from profile_engine.reconciler.backfill import Reconciler
from profile_engine.storage.sqlite import StorageEngine

_BASE = datetime(2025, 1, 1, tzinfo=UTC)


class RecordingProfileStore(SqliteProfileStore):
    """Records insert order and fails for chosen identity ids."""

    def __init__(self, storage: StorageEngine, failures: dict[str, Exception] | None = None):
        super().__init__(storage)
        self.failures = failures or {}
        self.inserted: list[str] = []

    async def insert(self, profile: Profile) -> None:
        if profile.id in self.failures:
            raise self.failures[profile.id]
        await super().insert(profile)
        self.inserted.append(profile.id)


class UnreachableIdentityStore(IdentityStore):
    async def get_by_id(self, identity_id: str) -> Identity:
        raise StoreUnavailableError("down")

    async def list_without_profile(
        self, after: datetime | None = None, *, batch_size: int = 100
    ) -> AsyncIterator[Identity]:
        raise StoreUnavailableError("down")
        yield  # pragma: no cover

    async def count_without_profile(self) -> int:
        raise StoreUnavailableError("down")

    async def count_without_profile_or_email(self) -> int:
        raise StoreUnavailableError("down")

    async def ping(self) -> None:
        raise StoreUnavailableError("down")

    async def hooks(self) -> dict[str, bool]:
        raise StoreUnavailableError("down")

    async def install_hook(self, name: str) -> None:
        raise StoreUnavailableError("down")

    async def remove_hook(self, name: str) -> None:
        raise StoreUnavailableError("down")

    async def _set_hook_enabled(self, name: str, enabled: bool) -> bool:
        raise StoreUnavailableError("down")


@pytest_asyncio.fixture
async def storage(tmp_path: Path):
    db_path = tmp_path / "test.db"
    engine = StorageEngine(db_path)
    await engine.initialize()
    yield engine
    await engine.close()


@pytest_asyncio.fixture
async def identities(storage: StorageEngine):
    return LocalIdentityStore(storage)


@pytest_asyncio.fixture
async def profiles(storage: StorageEngine):
    return RecordingProfileStore(storage)


async def _seed(identities: LocalIdentityStore, count: int, *, start: int = 0) -> None:
    for i in range(start, start + count):
        await identities.create(
            identity_id=f"id-{i:03d}",
            email=f"user{i}@example.com",
            metadata={"role": "specialist"} if i % 2 else {},
            created_at=_BASE + timedelta(minutes=i),
        )


@pytest.mark.asyncio
async def test_backfill_creates_one_profile_per_emailed_identity(
    identities: LocalIdentityStore, profiles: RecordingProfileStore
) -> None:
    await _seed(identities, 4)
    await identities.create(identity_id="no-email", email="")
    await identities.create(identity_id="null-email", email=None)

    result = await Reconciler(identities, profiles).backfill_missing_profiles()

    assert result.created == 4
    assert result.errors == 0
    assert result.skipped == 2
    assert await profiles.count() == 4
    assert (await profiles.get_by_id("id-001")).role == Role.SPECIALIST
    assert (await profiles.get_by_id("id-000")).role == Role.PARENT


@pytest.mark.asyncio
async def test_drift_converges_and_second_run_is_noop(
    identities: LocalIdentityStore, profiles: RecordingProfileStore
) -> None:
    await _seed(identities, 12)
    assert await identities.count_without_profile() == 12

    reconciler = Reconciler(identities, profiles, batch_size=5)
    first = await reconciler.backfill_missing_profiles()
    assert first.created == 12
    assert await identities.count_without_profile() == 0

    second = await reconciler.backfill_missing_profiles()
    assert second.created == 0
    assert second.total == 0
    assert await profiles.count() == 12


@pytest.mark.asyncio
async def test_oldest_first(
    identities: LocalIdentityStore, profiles: RecordingProfileStore
) -> None:
    await identities.create(identity_id="newer", email="n@x.com", created_at=_BASE + timedelta(1))
    await identities.create(identity_id="older", email="o@x.com", created_at=_BASE)
    await Reconciler(identities, profiles).backfill_missing_profiles()
    assert profiles.inserted == ["older", "newer"]


@pytest.mark.asyncio
async def test_backfilled_profile_dated_from_identity(
    identities: LocalIdentityStore, profiles: RecordingProfileStore
) -> None:
    await _seed(identities, 1)
    await Reconciler(identities, profiles).backfill_missing_profiles()
    profile = await profiles.get_by_id("id-000")
    assert profile.created_at == _BASE
    assert profile.updated_at > _BASE


@pytest.mark.asyncio
async def test_row_failures_do_not_abort_batch(
    storage: StorageEngine, identities: LocalIdentityStore
) -> None:
    await _seed(identities, 5)
    profiles = RecordingProfileStore(
        storage,
        failures={
            "id-001": TransientStoreError("database is locked"),
            "id-003": PermanentStoreError("CHECK constraint failed"),
        },
    )
    result = await Reconciler(identities, profiles).backfill_missing_profiles()
    assert result.created == 3
    assert result.errors == 2
    assert profiles.inserted == ["id-000", "id-002", "id-004"]

    # A rerun only touches what is still missing.
    profiles.failures.clear()
    rerun = await Reconciler(identities, profiles).backfill_missing_profiles()
    assert rerun.created == 2
    assert profiles.inserted[-2:] == ["id-001", "id-003"]
    assert await identities.count_without_profile() == 0


@pytest.mark.asyncio
async def test_unreachable_store_is_fatal(profiles: RecordingProfileStore) -> None:
    with pytest.raises(StoreUnavailableError):
        await Reconciler(UnreachableIdentityStore(), profiles).backfill_missing_profiles()


@pytest.mark.asyncio
async def test_limit(identities: LocalIdentityStore, profiles: RecordingProfileStore) -> None:
    await _seed(identities, 6)
    result = await Reconciler(identities, profiles, batch_size=4).backfill_missing_profiles(
        limit=3
    )
    assert result.created == 3
    assert profiles.inserted == ["id-000", "id-001", "id-002"]
    assert await identities.count_without_profile() == 3


@pytest.mark.asyncio
async def test_after(identities: LocalIdentityStore, profiles: RecordingProfileStore) -> None:
    await _seed(identities, 4)
    result = await Reconciler(identities, profiles).backfill_missing_profiles(
        after=_BASE + timedelta(minutes=1)
    )
    assert profiles.inserted == ["id-002", "id-003"]
    assert result.created == 2


@pytest.mark.asyncio
async def test_parallel_rows(
    identities: LocalIdentityStore, profiles: RecordingProfileStore
) -> None:
    await _seed(identities, 20)
    result = await Reconciler(
        identities, profiles, batch_size=7, concurrency=4
    ).backfill_missing_profiles()
    assert result.created == 20
    assert sorted(profiles.inserted) == [f"id-{i:03d}" for i in range(20)]


@pytest.mark.asyncio
async def test_rejects_bad_settings(
    identities: LocalIdentityStore, profiles: RecordingProfileStore
) -> None:
    with pytest.raises(ValueError):
        Reconciler(identities, profiles, batch_size=0)
    with pytest.raises(ValueError):
        Reconciler(identities, profiles, concurrency=0)


@pytest.mark.asyncio
async def test_race_with_provisioner_yields_one_row(
    identities: LocalIdentityStore, profiles: RecordingProfileStore
) -> None:
    identity = await identities.create(identity_id="racer", email="racer@example.com")
    provisioner = Provisioner(profiles)
    reconciler = Reconciler(identities, profiles)

    first, second, backfill = await asyncio.gather(
        provisioner.on_identity_created(identity),
        provisioner.on_identity_created(identity),
        reconciler.backfill_missing_profiles(),
    )

    assert await profiles.count() == 1
    created = [first.outcome, second.outcome].count(ProvisionOutcome.CREATED) + backfill.created
    assert created == 1
    assert backfill.errors == 0
    assert {first.outcome, second.outcome} <= {
        ProvisionOutcome.CREATED,
        ProvisionOutcome.DUPLICATE,
    }


@pytest.mark.asyncio
async def test_concurrent_backfills(
    identities: LocalIdentityStore, profiles: RecordingProfileStore
) -> None:
    await _seed(identities, 10)
    reconciler = Reconciler(identities, profiles, batch_size=3)
    first, second = await asyncio.gather(
        reconciler.backfill_missing_profiles(),
        reconciler.backfill_missing_profiles(),
    )
    assert first.created + second.created == 10
    assert first.errors == second.errors == 0
    assert await profiles.count() == 10


@pytest.mark.asyncio
async def test_event_path_disabled_then_backfill(
    identities: LocalIdentityStore, profiles: RecordingProfileStore
) -> None:
    provisioner = Provisioner(profiles)
    await provisioner.install(identities)
    await identities.disable_hook("on_identity_created")
    await _seed(identities, 3)
    await identities.drain()
    assert await profiles.count() == 0

    await Reconciler(identities, profiles).backfill_missing_profiles()
    assert await identities.count_without_profile() == 0
