import httpx
import pytest

from estates.domain.properties.bayut_client import BayutAPIError, BayutClient
from estates.domain.properties.repository import PropertyRepository
from estates.domain.properties.sync_service import AreaSyncError, PropertySyncService, SyncOptions
from estates.models import AreaSyncLog, Property, SyncRun

MARINA = "5002"
DOWNTOWN = "6901"


class FakeBayut:
    """Serves canned pages per location id through an httpx mock transport"""

    def __init__(self, pages=None, failing=(), failing_pages=()):
        self.pages = pages or {}
        self.failing = set(failing)
        self.failing_pages = set(failing_pages)
        self.requests = []

    def __call__(self, request):
        params = request.url.params
        location = params["locationExternalIDs"]
        self.requests.append((location, params["purpose"], int(params["page"])))
        if location in self.failing:
            return httpx.Response(500, text="upstream down")
        if (location, int(params["page"])) in self.failing_pages:
            return httpx.Response(503, text="service unavailable")
        pages = self.pages.get((location, params["purpose"]), [])
        page = int(params["page"])
        hits = pages[page] if page < len(pages) else []
        return httpx.Response(200, json={"hits": hits, "nbPages": len(pages)})

    def client(self):
        return BayutClient(api_key="test", transport=httpx.MockTransport(self))


@pytest.fixture
def lite():
    return SyncOptions(max_pages=3, skip_recently_synced=False)


class TestSyncArea:
    @pytest.mark.asyncio
    async def test_upserts_every_listing(self, db, make_listing, lite):
        fake = FakeBayut({(MARINA, "for-sale"): [[make_listing("1"), make_listing("2")], [make_listing("3")]]})
        service = PropertySyncService(db, client=fake.client())

        result = await service.sync_area("dubai-marina", lite)

        assert result.status == "completed"
        assert result.properties_found == 3
        assert result.properties_synced == 3
        assert result.api_calls_used == 2
        assert db.query(Property).count() == 3

    @pytest.mark.asyncio
    async def test_stops_at_last_page(self, db, make_listing, lite):
        fake = FakeBayut({(MARINA, "for-sale"): [[make_listing("1")]]})
        await PropertySyncService(db, client=fake.client()).sync_area("dubai-marina", lite)
        assert fake.requests == [(MARINA, "for-sale", 0)]

    @pytest.mark.asyncio
    async def test_resync_updates_in_place(self, db, make_listing, lite):
        fake = FakeBayut({(MARINA, "for-sale"): [[make_listing("1", price=900_000)]]})
        service = PropertySyncService(db, client=fake.client())
        await service.sync_area("dubai-marina", lite)

        prop = db.query(Property).one()
        prop.is_published = True
        db.commit()

        fake.pages[(MARINA, "for-sale")] = [[make_listing("1", price=950_000)]]
        await service.sync_area("dubai-marina", lite)

        prop = db.query(Property).one()
        assert prop.price_aed == 950_000
        assert prop.is_published is True

    @pytest.mark.asyncio
    async def test_skips_recently_synced(self, db, make_listing):
        fake = FakeBayut({(MARINA, "for-sale"): [[make_listing("1"), make_listing("2")]]})
        service = PropertySyncService(db, client=fake.client())
        options = SyncOptions(skip_recently_synced=True)

        await service.sync_area("dubai-marina", options)
        second = await service.sync_area("dubai-marina", options)

        assert second.properties_synced == 0
        assert second.properties_skipped == 2

    @pytest.mark.asyncio
    async def test_include_rentals_fetches_both_purposes(self, db, make_listing):
        fake = FakeBayut(
            {
                (MARINA, "for-sale"): [[make_listing("1")]],
                (MARINA, "for-rent"): [[make_listing("2", purpose="for-rent")]],
            }
        )
        options = SyncOptions(include_rentals=True, skip_recently_synced=False)
        result = await PropertySyncService(db, client=fake.client()).sync_area("dubai-marina", options)

        assert result.properties_synced == 2
        rental = db.query(Property).filter(Property.external_id == "2").one()
        assert rental.listing_type == "rent"

    @pytest.mark.asyncio
    async def test_bad_record_does_not_stop_the_area(self, db, make_listing, lite):
        fake = FakeBayut({(MARINA, "for-sale"): [[make_listing("1", price="call us"), make_listing("2")]]})
        result = await PropertySyncService(db, client=fake.client()).sync_area("dubai-marina", lite)

        assert result.status == "completed_with_errors"
        assert result.properties_synced == 1
        assert result.errors[0].startswith("Property 1:")
        assert db.query(Property).count() == 1

    @pytest.mark.asyncio
    async def test_listings_without_an_id_are_not_merged(self, db, make_listing, lite):
        hits = [make_listing("1", externalID=None), make_listing("2", externalID=None), make_listing("3")]
        fake = FakeBayut({(MARINA, "for-sale"): [hits]})
        result = await PropertySyncService(db, client=fake.client()).sync_area("dubai-marina", lite)

        assert result.properties_synced == 1
        assert len(result.errors) == 2
        assert "no externalID or id" in result.errors[0]
        assert [p.external_id for p in db.query(Property).all()] == ["3"]

    @pytest.mark.asyncio
    async def test_unknown_area(self, db):
        with pytest.raises(ValueError):
            await PropertySyncService(db, client=FakeBayut().client()).sync_area("atlantis")

    @pytest.mark.asyncio
    async def test_api_failure_marks_area_log_failed(self, db):
        fake = FakeBayut(failing={MARINA})
        with pytest.raises(AreaSyncError) as exc_info:
            await PropertySyncService(db, client=fake.client()).sync_area("dubai-marina")

        assert isinstance(exc_info.value.__cause__, BayutAPIError)
        assert exc_info.value.result.status == "failed"
        log = db.query(AreaSyncLog).one()
        assert log.status == "failed"
        assert log.completed_at is not None


class TestBulkSync:
    @pytest.mark.asyncio
    async def test_one_failing_area_is_partial_success(self, db, make_listing, lite):
        fake = FakeBayut({(MARINA, "for-sale"): [[make_listing("1")]]}, failing={DOWNTOWN})
        service = PropertySyncService(db, client=fake.client())

        summary = await service.run_bulk_sync(["downtown-dubai", "dubai-marina"], lite, triggered_by="admin")

        assert summary["status"] == "completed_with_errors"
        assert summary["success"] is True
        assert summary["propertiesSynced"] == 1
        assert summary["areasProcessed"] == 1
        assert summary["areasTotal"] == 2
        assert summary["errors"][0].startswith("downtown-dubai:")

        run = db.query(SyncRun).one()
        assert run.status == "completed_with_errors"
        assert run.triggered_by == "admin"
        assert run.completed_at is not None
        assert len(PropertyRepository.get_area_logs(db, run.id)) == 2

    @pytest.mark.asyncio
    async def test_rows_written_before_a_page_failure_are_counted(self, db, make_listing, lite):
        pages = [[make_listing("1"), make_listing("2")], [make_listing("3")], [make_listing("4")]]
        fake = FakeBayut({(MARINA, "for-sale"): pages}, failing_pages={(MARINA, 1)})

        summary = await PropertySyncService(db, client=fake.client()).run_bulk_sync(["dubai-marina"], lite)

        assert db.query(Property).count() == 2
        assert summary["propertiesSynced"] == 2
        assert summary["status"] == "completed_with_errors"
        assert summary["success"] is True
        assert summary["areasProcessed"] == 0
        assert summary["areas"][0]["status"] == "failed"

        run = db.query(SyncRun).one()
        assert run.properties_synced == 2
        assert run.status == "completed_with_errors"

    @pytest.mark.asyncio
    async def test_every_area_failing_is_failed(self, db, lite):
        fake = FakeBayut(failing={MARINA, DOWNTOWN})
        summary = await PropertySyncService(db, client=fake.client()).run_bulk_sync(
            ["dubai-marina", "downtown-dubai"], lite
        )

        assert summary["status"] == "failed"
        assert summary["success"] is False
        assert len(summary["errors"]) == 2

    @pytest.mark.asyncio
    async def test_running_twice_does_not_duplicate(self, db, make_listing, lite):
        fake = FakeBayut({(MARINA, "for-sale"): [[make_listing("1"), make_listing("2")]]})
        service = PropertySyncService(db, client=fake.client())

        await service.run_bulk_sync(["dubai-marina"], lite)
        await service.run_bulk_sync(["dubai-marina"], lite)

        assert PropertyRepository.count_properties(db, "bayut") == 2
        assert db.query(SyncRun).count() == 2
