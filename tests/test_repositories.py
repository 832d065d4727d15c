"""
Tests for repository classes and the atomic store.
Covers filtering, orphan queries, image URL lookups and transactional procedures.
"""

import pytest
import uuid
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.photo import Photo, PHOTO_SOURCE_CREATION
from app.models.property import Property
from app.repositories.photo import PhotoRepository
from app.repositories.property import PropertyRepository, PropertySearchFilters
from app.repositories.store import AtomicStore
from app.utils.exceptions import StoreError
from tests.conftest import PhotoFactory, PropertyFactory, later


async def count_rows(db_session: AsyncSession, model) -> int:
    result = await db_session.execute(select(func.count(model.id)))
    return result.scalar()


class TestPropertyRepository:
    """Test PropertyRepository functionality."""

    @pytest.mark.asyncio
    async def test_get_property(self, db_session: AsyncSession, property_repository: PropertyRepository):
        created = await PropertyFactory.create_property(db_session, title="Loft")

        found = await property_repository.get_property(created.id)

        assert found is not None
        assert found.title == "Loft"
        assert await property_repository.get_property(uuid.uuid4()) is None

    @pytest.mark.asyncio
    async def test_search_defaults_to_active_newest_first(
        self, db_session: AsyncSession, property_repository: PropertyRepository
    ):
        older = await PropertyFactory.create_property(db_session, title="Older", created_at=later(0))
        newer = await PropertyFactory.create_property(db_session, title="Newer", created_at=later(60))
        await PropertyFactory.create_property(db_session, title="Archived", status="archived", created_at=later(120))

        properties, total = await property_repository.search_properties(PropertySearchFilters())

        assert total == 2
        assert [p.id for p in properties] == [newer.id, older.id]

    @pytest.mark.asyncio
    async def test_search_filters(self, db_session: AsyncSession, property_repository: PropertyRepository):
        await PropertyFactory.create_property(db_session, city="Springfield", price=Decimal("900"), property_type="apartment")
        await PropertyFactory.create_property(db_session, city="Shelbyville", price=Decimal("1500"), property_type="house")
        await PropertyFactory.create_property(
            db_session, city="North Springfield", price=Decimal("2500"), property_type="apartment", owner_id="owner_2"
        )

        by_city, total = await property_repository.search_properties(PropertySearchFilters(city="springfield"))
        assert total == 2

        by_price, total = await property_repository.search_properties(
            PropertySearchFilters(min_price=Decimal("1000"), max_price=Decimal("2000"))
        )
        assert total == 1
        assert by_price[0].city == "Shelbyville"

        by_type, total = await property_repository.search_properties(PropertySearchFilters(property_type="apartment"))
        assert total == 2

        by_owner, total = await property_repository.search_properties(PropertySearchFilters(owner_id="owner_2"))
        assert total == 1
        assert by_owner[0].city == "North Springfield"

    @pytest.mark.asyncio
    async def test_search_empty_status_lists_all(self, db_session: AsyncSession, property_repository: PropertyRepository):
        await PropertyFactory.create_property(db_session, status="active")
        await PropertyFactory.create_property(db_session, status="archived")

        _, total = await property_repository.search_properties(PropertySearchFilters(status=""))

        assert total == 2

    @pytest.mark.asyncio
    async def test_search_pagination(self, db_session: AsyncSession, property_repository: PropertyRepository):
        for i in range(5):
            await PropertyFactory.create_property(db_session, title=f"P{i}", created_at=later(i))

        page, total = await property_repository.search_properties(PropertySearchFilters(), skip=2, limit=2)

        assert total == 5
        assert [p.title for p in page] == ["P2", "P1"]

    @pytest.mark.asyncio
    async def test_update_property(self, db_session: AsyncSession, property_repository: PropertyRepository):
        created = await PropertyFactory.create_property(db_session, title="Before")

        updated = await property_repository.update_property(created.id, {"title": "After", "price": Decimal("1200.00")})

        assert updated.title == "After"
        assert updated.price == Decimal("1200.00")

    @pytest.mark.asyncio
    async def test_update_missing_property_returns_none(self, property_repository: PropertyRepository):
        assert await property_repository.update_property(uuid.uuid4(), {"title": "x"}) is None

    @pytest.mark.asyncio
    async def test_delete_property_with_photos(self, db_session: AsyncSession, property_repository: PropertyRepository):
        property_obj = await PropertyFactory.create_property(db_session)
        await PhotoFactory.create_photo(db_session, "https://cdn.example.com/a.jpg", property_id=property_obj.id)
        orphan = await PhotoFactory.create_photo(db_session, "https://cdn.example.com/b.jpg")

        assert await property_repository.delete_property_with_photos(property_obj.id) is True

        assert await count_rows(db_session, Property) == 0
        remaining = (await db_session.execute(select(Photo))).scalars().all()
        assert [photo.id for photo in remaining] == [orphan.id]

    @pytest.mark.asyncio
    async def test_delete_missing_property(self, property_repository: PropertyRepository):
        assert await property_repository.delete_property_with_photos(uuid.uuid4()) is False

    @pytest.mark.asyncio
    async def test_increment_view_count(self, db_session: AsyncSession, property_repository: PropertyRepository):
        property_obj = await PropertyFactory.create_property(db_session)

        await property_repository.increment_view_count(property_obj.id)
        await property_repository.increment_view_count(property_obj.id)

        refreshed = await property_repository.get_property(property_obj.id)
        assert refreshed.view_count == 2

    @pytest.mark.asyncio
    async def test_find_by_image_url(self, db_session: AsyncSession, property_repository: PropertyRepository):
        target = await PropertyFactory.create_property(
            db_session, images=["https://cdn.example.com/x.jpg", "https://cdn.example.com/y.jpg"]
        )
        await PropertyFactory.create_property(db_session, images=["https://cdn.example.com/z.jpg"])

        found = await property_repository.find_by_image_url("https://cdn.example.com/y.jpg")

        assert found is not None
        assert found.id == target.id
        assert await property_repository.find_by_image_url("https://cdn.example.com/nope.jpg") is None

    @pytest.mark.asyncio
    async def test_find_by_image_url_requires_exact_match(
        self, db_session: AsyncSession, property_repository: PropertyRepository
    ):
        await PropertyFactory.create_property(db_session, images=["https://cdn.example.com/x.jpg?tr=w-300"])

        assert await property_repository.find_by_image_url("https://cdn.example.com/x.jpg") is None


class TestPhotoRepository:
    """Test PhotoRepository functionality."""

    @pytest.mark.asyncio
    async def test_get_by_property_id(self, db_session: AsyncSession, photo_repository: PhotoRepository):
        property_obj = await PropertyFactory.create_property(db_session)
        await PhotoFactory.create_photo(db_session, "https://cdn.example.com/1.jpg", property_id=property_obj.id)
        await PhotoFactory.create_photo(db_session, "https://cdn.example.com/2.jpg", property_id=property_obj.id)
        await PhotoFactory.create_photo(db_session, "https://cdn.example.com/3.jpg")

        photos = await photo_repository.get_by_property_id(property_obj.id)

        assert [photo.url for photo in photos] == ["https://cdn.example.com/1.jpg", "https://cdn.example.com/2.jpg"]

    @pytest.mark.asyncio
    async def test_get_orphan_photos_oldest_first_with_limit(
        self, db_session: AsyncSession, photo_repository: PhotoRepository
    ):
        property_obj = await PropertyFactory.create_property(db_session)
        await PhotoFactory.create_photo(db_session, "https://cdn.example.com/new.jpg", created_at=later(30))
        await PhotoFactory.create_photo(db_session, "https://cdn.example.com/old.jpg", created_at=later(10))
        await PhotoFactory.create_photo(db_session, "https://cdn.example.com/mid.jpg", created_at=later(20))
        await PhotoFactory.create_photo(db_session, "https://cdn.example.com/linked.jpg", property_id=property_obj.id)

        orphans = await photo_repository.get_orphan_photos(limit=2)

        assert [photo.url for photo in orphans] == ["https://cdn.example.com/old.jpg", "https://cdn.example.com/mid.jpg"]

    @pytest.mark.asyncio
    async def test_checked_orphans_rotate_behind_unchecked(
        self, db_session: AsyncSession, photo_repository: PhotoRepository
    ):
        """Stamped orphans come after never-checked ones, least recently checked first."""
        old = await PhotoFactory.create_photo(db_session, "https://cdn.example.com/old.jpg", created_at=later(10))
        mid = await PhotoFactory.create_photo(db_session, "https://cdn.example.com/mid.jpg", created_at=later(20))
        await PhotoFactory.create_photo(db_session, "https://cdn.example.com/new.jpg", created_at=later(30))

        assert await photo_repository.mark_reconcile_checked([mid.id], checked_at=later(100)) == 1
        assert await photo_repository.mark_reconcile_checked([old.id], checked_at=later(200)) == 1

        orphans = await photo_repository.get_orphan_photos(limit=3)

        assert [photo.url for photo in orphans] == [
            "https://cdn.example.com/new.jpg",
            "https://cdn.example.com/mid.jpg",
            "https://cdn.example.com/old.jpg",
        ]

    @pytest.mark.asyncio
    async def test_mark_reconcile_checked_skips_linked_photos(
        self, db_session: AsyncSession, photo_repository: PhotoRepository
    ):
        property_obj = await PropertyFactory.create_property(db_session)
        linked = await PhotoFactory.create_photo(db_session, "https://cdn.example.com/l.jpg", property_id=property_obj.id)

        assert await photo_repository.mark_reconcile_checked([linked.id]) == 0
        assert await photo_repository.mark_reconcile_checked([]) == 0

        photo = await photo_repository.get_by_id(linked.id)
        assert photo.reconcile_checked_at is None

    @pytest.mark.asyncio
    async def test_find_orphan_by_url(self, db_session: AsyncSession, photo_repository: PhotoRepository):
        property_obj = await PropertyFactory.create_property(db_session)
        await PhotoFactory.create_photo(db_session, "https://cdn.example.com/linked.jpg", property_id=property_obj.id)
        orphan = await PhotoFactory.create_photo(db_session, "https://cdn.example.com/orphan.jpg")

        assert (await photo_repository.find_orphan_by_url("https://cdn.example.com/orphan.jpg")).id == orphan.id
        assert await photo_repository.find_orphan_by_url("https://cdn.example.com/linked.jpg") is None

    @pytest.mark.asyncio
    async def test_assign_property_with_metadata(self, db_session: AsyncSession, photo_repository: PhotoRepository):
        property_obj = await PropertyFactory.create_property(db_session)
        orphan = await PhotoFactory.create_photo(db_session, "https://cdn.example.com/o.jpg", metadata={"width": 800})

        assert await photo_repository.assign_property(orphan.id, property_obj.id, {"width": 800, "linked_by": "test"})

        photo = await photo_repository.get_by_id(orphan.id)
        assert photo.property_id == property_obj.id
        assert photo.photo_metadata == {"width": 800, "linked_by": "test"}

    @pytest.mark.asyncio
    async def test_assign_property_keeps_metadata_when_not_given(
        self, db_session: AsyncSession, photo_repository: PhotoRepository
    ):
        property_obj = await PropertyFactory.create_property(db_session)
        orphan = await PhotoFactory.create_photo(db_session, "https://cdn.example.com/o.jpg", metadata={"width": 800})

        await photo_repository.assign_property(orphan.id, property_obj.id)

        photo = await photo_repository.get_by_id(orphan.id)
        assert photo.photo_metadata == {"width": 800}

    @pytest.mark.asyncio
    async def test_assign_missing_photo(self, db_session: AsyncSession, photo_repository: PhotoRepository):
        property_obj = await PropertyFactory.create_property(db_session)

        assert await photo_repository.assign_property(uuid.uuid4(), property_obj.id) is False

    @pytest.mark.asyncio
    async def test_assign_property_never_repoints_linked_photo(
        self, db_session: AsyncSession, photo_repository: PhotoRepository
    ):
        """A photo linked after it was read as an orphan keeps its property."""
        first = await PropertyFactory.create_property(db_session)
        second = await PropertyFactory.create_property(db_session)
        photo = await PhotoFactory.create_photo(db_session, "https://cdn.example.com/race.jpg", property_id=first.id)

        assert await photo_repository.assign_property(photo.id, second.id, {"linked_by": "test"}) is False

        stored = await photo_repository.get_by_id(photo.id)
        assert stored.property_id == first.id
        assert stored.photo_metadata == {}


class TestAtomicStore:
    """Test AtomicStore procedures."""

    def test_creation_procedure_is_registered(self):
        assert "create_property_with_photos" in AtomicStore.procedure_names()

    @pytest.mark.asyncio
    async def test_create_property_with_photos(self, db_session: AsyncSession, atomic_store: AtomicStore):
        urls = ["https://cdn.example.com/1.jpg", "https://cdn.example.com/2.jpg"]

        property_obj = await atomic_store.execute_atomic(
            "create_property_with_photos",
            property_fields={"owner_id": "user_abc", "title": "T", "address": "A", "price": Decimal("10.00"), "images": urls},
            image_urls=urls
        )

        assert property_obj.id is not None
        photos = (await db_session.execute(select(Photo).where(Photo.property_id == property_obj.id))).scalars().all()
        assert sorted(photo.url for photo in photos) == urls
        for photo in photos:
            assert photo.uploader_id == "user_abc"
            assert photo.category == "property"
            assert photo.imagekit_file_id == photo.url
            assert photo.thumbnail_url == photo.url
            assert photo.photo_metadata == {"source": PHOTO_SOURCE_CREATION}

    @pytest.mark.asyncio
    async def test_failure_rolls_back_everything(
        self, db_session: AsyncSession, atomic_store: AtomicStore, monkeypatch
    ):
        """A failing photo insert leaves no property and no photo rows."""
        import app.repositories.store as store_module

        original = store_module.build_creation_photo
        calls = {"n": 0}

        def flaky_photo(url, property_obj):
            calls["n"] += 1
            photo = original(url, property_obj)
            if calls["n"] == 2:
                photo.url = None
            return photo

        monkeypatch.setattr(store_module, "build_creation_photo", flaky_photo)
        urls = ["https://cdn.example.com/1.jpg", "https://cdn.example.com/2.jpg", "https://cdn.example.com/3.jpg"]

        with pytest.raises(StoreError):
            await atomic_store.execute_atomic(
                "create_property_with_photos",
                property_fields={"owner_id": "u", "title": "T", "address": "A", "price": Decimal("10.00"), "images": urls},
                image_urls=urls
            )

        assert await count_rows(db_session, Property) == 0
        assert await count_rows(db_session, Photo) == 0

    @pytest.mark.asyncio
    async def test_unknown_procedure(self, atomic_store: AtomicStore):
        with pytest.raises(StoreError, match="Unknown atomic procedure"):
            await atomic_store.execute_atomic("does_not_exist")
