"""Tests for the RecordStore contract.

Every test here runs against both the in-memory and the SQLite backend
through the ``job_store`` and ``ticket_store`` fixtures.
"""

import asyncio
from dataclasses import replace
from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from record_tracker.records.errors import InvalidTransitionError, ValidationError
from record_tracker.records.models import (
    ApplicationSortField,
    ApplicationStatus,
    JobApplication,
    SearchFilter,
    SortSpec,
    Ticket,
    TicketSortField,
    TicketStatus,
)
from record_tracker.records.store import InMemoryRecordStore
from record_tracker.records.workflow import TICKET_WORKFLOW


async def _seed(store, *records):
    return [await store.create(record) for record in records]


class TestCreate:
    """Test record creation."""

    async def test_assigns_increasing_ids(self, job_store, acme, beta):
        first, second = await _seed(job_store, acme, beta)

        assert first.id >= 1
        assert second.id > first.id

    async def test_trims_and_stores_record(self, job_store):
        created = await job_store.create(
            JobApplication(
                company=" Acme ",
                position="Developer",
                location="Remote ",
                status=ApplicationStatus.OFFER,
                date_applied=date(2026, 1, 1),
            )
        )

        found = await job_store.find_by_id(created.id)
        assert found == created
        assert found.company == "Acme"
        assert found.location == "Remote"

    async def test_missing_status_uses_initial_state(self, job_store, ticket_store):
        job = await job_store.create(
            {"company": "Acme", "position": "Dev", "location": "NY"}
        )
        ticket = await ticket_store.create(
            {"title": "Printer", "description": "Jammed", "priority": "low"}
        )

        assert job.status is ApplicationStatus.APPLIED
        assert ticket.status is TicketStatus.NEW

    async def test_blank_field_is_rejected_and_nothing_stored(self, job_store):
        with pytest.raises(ValidationError) as exc_info:
            await job_store.create(
                {"company": "Acme", "position": "  ", "location": "NY"}
            )

        assert exc_info.value.field == "position"
        assert await job_store.find_all() == []

    async def test_invalid_status_is_rejected(self, job_store):
        with pytest.raises(ValidationError, match="Invalid status: HIRED"):
            await job_store.create(
                {
                    "company": "Acme",
                    "position": "Dev",
                    "location": "NY",
                    "status": "HIRED",
                }
            )

    async def test_unknown_field_is_rejected(self, job_store):
        with pytest.raises(ValidationError) as exc_info:
            await job_store.create(
                {"company": "Acme", "position": "Dev", "location": "NY", "salary": 1}
            )
        assert exc_info.value.field == "salary"

    async def test_wrong_record_kind_is_rejected(self, job_store, vpn_ticket):
        with pytest.raises(ValidationError):
            await job_store.create(vpn_ticket)

    async def test_ticket_timestamps_are_set(self, ticket_store, vpn_ticket):
        created = await ticket_store.create(vpn_ticket)

        assert created.created_at is not None
        assert created.updated_at == created.created_at

    async def test_concurrent_creates_get_distinct_ids(self, job_store, acme):
        created = await asyncio.gather(
            *(job_store.create(replace(acme, company=f"C{i}")) for i in range(10))
        )

        assert len({record.id for record in created}) == 10
        assert await job_store.count() == 10

    async def test_iso_date_string_is_parsed(self, job_store):
        created = await job_store.create(
            {
                "company": "Acme",
                "position": "Dev",
                "location": "NY",
                "date_applied": " 2026-01-01 ",
            }
        )

        assert created.date_applied == date(2026, 1, 1)
        assert await job_store.find_by_id(created.id) == created

    @pytest.mark.parametrize("bad_date", ["not-a-date", "2026-13-01", 20260101])
    async def test_invalid_date_is_rejected(self, job_store, acme, bad_date):
        with pytest.raises(ValidationError) as exc_info:
            await job_store.create(replace(acme, date_applied=bad_date))

        assert exc_info.value.field == "date_applied"
        assert await job_store.find_all() == []

    async def test_ticket_timestamp_string_is_parsed_as_utc(
        self, ticket_store, vpn_ticket
    ):
        created = await ticket_store.create(
            replace(vpn_ticket, created_at="2026-03-01T09:30:00")
        )

        assert created.created_at == datetime(2026, 3, 1, 9, 30, tzinfo=UTC)
        assert await ticket_store.find_by_id(created.id) == created

    async def test_invalid_ticket_timestamp_is_rejected(
        self, ticket_store, vpn_ticket
    ):
        with pytest.raises(ValidationError) as exc_info:
            await ticket_store.create(replace(vpn_ticket, created_at="noon"))

        assert exc_info.value.field == "created_at"
        assert await ticket_store.count() == 0


class TestQueries:
    """Test listing, lookup, filtering and search."""

    async def test_find_all_defaults_to_newest_first(self, job_store, acme, beta):
        first, second = await _seed(job_store, acme, beta)

        records = await job_store.find_all()

        assert [r.id for r in records] == [second.id, first.id]

    async def test_find_by_id_missing_returns_none(self, job_store):
        assert await job_store.find_by_id(999) is None

    async def test_find_by_status(self, job_store, acme, beta):
        _, second = await _seed(job_store, acme, beta)

        records = await job_store.find_by_status("interview")

        assert records == [second]

    async def test_find_by_status_rejects_unknown(self, job_store):
        with pytest.raises(ValidationError):
            await job_store.find_by_status("HIRED")

    async def test_search_is_case_insensitive_over_search_fields(
        self, job_store, acme, beta
    ):
        first, second = await _seed(job_store, acme, beta)

        assert await job_store.search("ACM") == [first]
        assert await job_store.search("analyst") == [second]
        # Location is not a search field.
        assert await job_store.search("remote") == []

    async def test_blank_search_returns_everything(self, job_store, acme, beta):
        await _seed(job_store, acme, beta)

        assert len(await job_store.search("   ")) == 2
        assert len(await job_store.search(None)) == 2

    async def test_search_with_status_filter(self, job_store, acme, beta):
        await _seed(job_store, acme, beta, replace(acme, position="Architect"))

        records = await job_store.search("a", status=ApplicationStatus.APPLIED)

        assert {r.position for r in records} == {"Developer", "Architect"}

    async def test_search_treats_wildcards_literally(self, job_store, acme):
        """% and _ match themselves, never any character."""
        await _seed(
            job_store,
            replace(acme, company="100% Remote"),
            replace(acme, company="Acme_Labs"),
            replace(acme, company="AcmeXLabs"),
        )

        assert [r.company for r in await job_store.search("%")] == ["100% Remote"]
        assert [r.company for r in await job_store.search("e_l")] == ["Acme_Labs"]

    async def test_ticket_search_covers_description(self, ticket_store, vpn_ticket):
        created = await ticket_store.create(vpn_ticket)

        assert await ticket_store.search("home network") == [created]

    async def test_search_folds_non_ascii_case(self, job_store, acme):
        ecole, strasse = await _seed(
            job_store,
            replace(acme, company="École Polytechnique"),
            replace(acme, company="Straße GmbH"),
        )

        assert await job_store.search("école") == [ecole]
        assert await job_store.search("ÉCOLE") == [ecole]
        assert await job_store.search("STRASSE") == [strasse]


class TestFindMatching:
    """Test per-field, status and date-range filtering."""

    async def test_field_substrings_are_combined(self, job_store, acme, beta):
        _, _, labs = await _seed(
            job_store, acme, beta, replace(acme, company="Acme Labs", location="NY")
        )

        records = await job_store.find_matching(
            SearchFilter(contains={"company": "acme", "location": "ny"})
        )

        assert records == [labs]

    async def test_location_is_filterable(self, job_store, acme, beta):
        """Location is not a search field but can be filtered on."""
        first, _ = await _seed(job_store, acme, beta)

        records = await job_store.find_matching(
            SearchFilter(contains={"location": "REMOTE"})
        )

        assert records == [first]

    async def test_empty_filter_matches_everything(self, job_store, acme, beta):
        await _seed(job_store, acme, beta)

        assert len(await job_store.find_matching(SearchFilter())) == 2
        blank = SearchFilter(contains={"company": "  "})
        assert len(await job_store.find_matching(blank)) == 2

    async def test_status_and_substring(self, job_store, acme, beta):
        first, _ = await _seed(job_store, acme, beta)
        await job_store.update_status(first.id, "REJECTED")

        applied = SearchFilter(contains={"position": "dev"}, status="applied")
        rejected = SearchFilter(contains={"position": "dev"}, status="rejected")

        assert await job_store.find_matching(applied) == []
        assert [r.id for r in await job_store.find_matching(rejected)] == [first.id]

    async def test_date_range_is_inclusive_and_skips_undated(
        self, job_store, acme, beta
    ):
        first, second, third, _ = await _seed(
            job_store,
            acme,
            beta,
            replace(acme, date_applied=date(2026, 1, 3)),
            replace(acme, date_applied=None),
        )
        by_id = SortSpec("id", ascending=True)

        since = SearchFilter(date_from=date(2026, 1, 2))
        until = SearchFilter(date_to=date(2026, 1, 2))
        day = SearchFilter(date_from=date(2026, 1, 2), date_to=date(2026, 1, 2))

        assert await job_store.find_matching(since, by_id) == [second, third]
        assert await job_store.find_matching(until, by_id) == [first, second]
        assert await job_store.find_matching(day, by_id) == [second]

    async def test_date_bounds_accept_iso_strings(self, job_store, acme, beta):
        _, second = await _seed(job_store, acme, beta)

        records = await job_store.find_matching(SearchFilter(date_from="2026-01-02"))

        assert records == [second]

    async def test_substrings_treat_wildcards_literally(self, job_store, acme):
        percent, _ = await _seed(
            job_store,
            replace(acme, company="100% Remote"),
            replace(acme, company="1000 Remote"),
        )

        records = await job_store.find_matching(SearchFilter(contains={"company": "%"}))

        assert records == [percent]

    async def test_results_follow_sort(self, job_store, acme, beta):
        await _seed(job_store, beta, acme)

        records = await job_store.find_matching(
            SearchFilter(date_from=date(2026, 1, 1)),
            SortSpec("company", ascending=True),
        )

        assert [r.company for r in records] == ["Acme", "Beta"]

    @pytest.mark.parametrize("name", ["status", "date_applied", "salary"])
    async def test_unfilterable_field_is_rejected(self, job_store, name):
        with pytest.raises(ValidationError) as exc_info:
            await job_store.find_matching(SearchFilter(contains={name: "x"}))

        assert exc_info.value.field == name

    async def test_invalid_bounds_are_rejected(self, job_store):
        with pytest.raises(ValidationError) as exc_info:
            await job_store.find_matching(SearchFilter(date_to="yesterday"))
        assert exc_info.value.field == "date_to"

        with pytest.raises(ValidationError) as exc_info:
            await job_store.find_matching(SearchFilter(status="HIRED"))
        assert exc_info.value.field == "status"

    async def test_ticket_range_uses_utc_creation_day(self, ticket_store, vpn_ticket):
        plus_two = timezone(timedelta(hours=2))
        late, early_local, _ = await _seed(
            ticket_store,
            replace(vpn_ticket, created_at=datetime(2026, 3, 1, 23, 30, tzinfo=UTC)),
            # 2026-03-01 22:30 in UTC.
            replace(
                vpn_ticket,
                title="Printer jam",
                created_at=datetime(2026, 3, 2, 0, 30, tzinfo=plus_two),
            ),
            replace(vpn_ticket, created_at=datetime(2026, 3, 2, 10, 0, tzinfo=UTC)),
        )
        march_first = SearchFilter(
            date_from=date(2026, 3, 1), date_to=date(2026, 3, 1)
        )
        by_id = SortSpec("id", ascending=True)

        assert await ticket_store.find_matching(march_first, by_id) == [
            late,
            early_local,
        ]
        vpn_only = SearchFilter(contains={"title": "vpn"}, date_to=date(2026, 3, 1))
        assert await ticket_store.find_matching(vpn_only) == [late]


class TestSorting:
    """Test whitelisted sorting."""

    async def test_sort_by_company_ascending(self, job_store, acme, beta):
        await _seed(job_store, beta, acme)

        records = await job_store.find_all(SortSpec("company", ascending=True))

        assert [r.company for r in records] == ["Acme", "Beta"]

    async def test_ties_are_broken_by_id(self, job_store, acme):
        records = await _seed(job_store, acme, acme, acme)

        ascending = await job_store.find_all(SortSpec("company", ascending=True))
        descending = await job_store.find_all(SortSpec("company"))

        assert [r.id for r in ascending] == [r.id for r in records]
        assert [r.id for r in descending] == [r.id for r in reversed(records)]

    async def test_missing_dates_sort_lowest(self, job_store, acme, beta):
        undated = await job_store.create(replace(acme, date_applied=None))
        await _seed(job_store, acme, beta)

        ascending = await job_store.find_all(
            SortSpec(ApplicationSortField.DATE_APPLIED, ascending=True)
        )
        descending = await job_store.find_all(
            SortSpec(ApplicationSortField.DATE_APPLIED)
        )

        assert ascending[0].id == undated.id
        assert descending[-1].id == undated.id
        assert [r.date_applied for r in descending[:2]] == [
            date(2026, 1, 2),
            date(2026, 1, 1),
        ]

    async def test_sort_by_status(self, ticket_store, vpn_ticket):
        first = await ticket_store.create(vpn_ticket)
        second = await ticket_store.create(vpn_ticket)
        await ticket_store.update_status(second.id, TicketStatus.OPEN)

        records = await ticket_store.find_all(
            SortSpec(TicketSortField.STATUS, ascending=True)
        )

        assert [r.id for r in records] == [first.id, second.id]

    async def test_unknown_sort_field_is_rejected(self, job_store, acme):
        await job_store.create(acme)

        with pytest.raises(ValidationError):
            await job_store.find_all(SortSpec("company; DROP TABLE applications"))
        with pytest.raises(ValidationError):
            await job_store.search("acme", sort=SortSpec("salary"))

        assert await job_store.count() == 1


class TestUpdates:
    """Test status updates and field edits."""

    async def test_update_status(self, job_store, acme):
        created = await job_store.create(acme)

        assert await job_store.update_status(created.id, "OFFER") is True
        assert (await job_store.find_by_id(created.id)).status is (
            ApplicationStatus.OFFER
        )

    async def test_update_status_missing_record(self, job_store):
        assert await job_store.update_status(42, "OFFER") is False

    async def test_update_status_rejects_unknown_status(self, job_store, acme):
        created = await job_store.create(acme)

        with pytest.raises(ValidationError):
            await job_store.update_status(created.id, "HIRED")

    async def test_forbidden_transition_leaves_record_unchanged(
        self, ticket_store, vpn_ticket
    ):
        created = await ticket_store.create(vpn_ticket)

        with pytest.raises(InvalidTransitionError):
            await ticket_store.update_status(created.id, TicketStatus.CLOSED)

        assert (await ticket_store.find_by_id(created.id)).status is TicketStatus.NEW

    async def test_ticket_lifecycle_reaches_closed(self, ticket_store, vpn_ticket):
        created = await ticket_store.create(vpn_ticket)

        for status in ("OPEN", "IN_PROGRESS", "RESOLVED", "CLOSED"):
            assert await ticket_store.update_status(created.id, status)

        closed = await ticket_store.find_by_id(created.id)
        assert closed.status is TicketStatus.CLOSED
        assert closed.updated_at >= closed.created_at

    async def test_update_edits_fields(self, job_store, acme):
        created = await job_store.create(acme)

        edited = await job_store.update(
            created.id, {"location": " Berlin ", "status": "interview"}
        )

        assert edited.location == "Berlin"
        assert edited.status is ApplicationStatus.INTERVIEW
        assert await job_store.find_by_id(created.id) == edited

    async def test_update_missing_record_returns_none(self, job_store):
        assert await job_store.update(5, {"company": "X"}) is None

    async def test_update_rejects_blank_field(self, job_store, acme):
        created = await job_store.create(acme)

        with pytest.raises(ValidationError):
            await job_store.update(created.id, {"company": ""})

        assert (await job_store.find_by_id(created.id)).company == "Acme"

    async def test_update_rejects_identity_change(self, job_store, acme):
        created = await job_store.create(acme)

        with pytest.raises(ValidationError) as exc_info:
            await job_store.update(created.id, {"id": 99})
        assert exc_info.value.field == "id"

    async def test_update_checks_workflow(self, ticket_store, vpn_ticket):
        created = await ticket_store.create(vpn_ticket)

        with pytest.raises(InvalidTransitionError):
            await ticket_store.update(created.id, {"status": "closed"})

    async def test_repeated_status_is_checked_on_both_paths(
        self, ticket_store, vpn_ticket
    ):
        created = await ticket_store.create(vpn_ticket)
        await ticket_store.update_status(created.id, "RESOLVED")
        await ticket_store.update_status(created.id, "CLOSED")
        closed = await ticket_store.find_by_id(created.id)

        with pytest.raises(InvalidTransitionError):
            await ticket_store.update_status(created.id, "CLOSED")
        with pytest.raises(InvalidTransitionError):
            await ticket_store.update(created.id, {"status": "CLOSED", "title": "X"})

        assert await ticket_store.find_by_id(created.id) == closed

    async def test_repeated_status_is_allowed_by_permissive_workflow(
        self, job_store, acme
    ):
        created = await job_store.create(acme)

        assert await job_store.update_status(created.id, "APPLIED")
        edited = await job_store.update(created.id, {"status": "APPLIED"})
        assert edited.status is ApplicationStatus.APPLIED

    async def test_update_parses_date_string(self, job_store, acme):
        created = await job_store.create(acme)

        edited = await job_store.update(created.id, {"date_applied": "2026-02-03"})

        assert edited.date_applied == date(2026, 2, 3)
        assert await job_store.find_by_id(created.id) == edited

    async def test_update_rejects_invalid_date(self, job_store, acme):
        created = await job_store.create(acme)

        with pytest.raises(ValidationError) as exc_info:
            await job_store.update(created.id, {"date_applied": "not-a-date"})

        assert exc_info.value.field == "date_applied"
        assert await job_store.find_by_id(created.id) == created


class TestDeleteAndCount:
    """Test deletion and status counts."""

    async def test_delete_by_id(self, job_store, acme, beta):
        first, second = await _seed(job_store, acme, beta)

        assert await job_store.delete_by_id(first.id) is True
        assert await job_store.delete_by_id(first.id) is False
        assert await job_store.find_all() == [second]

    async def test_count_by_status(self, job_store, acme, beta):
        await _seed(job_store, acme, acme, beta)

        assert await job_store.count_by_status() == {
            ApplicationStatus.APPLIED: 2,
            ApplicationStatus.INTERVIEW: 1,
        }
        assert await job_store.count() == 3


class TestReplaceAll:
    """Test bulk replacement."""

    async def test_replaces_everything_with_fresh_ids(self, job_store, acme, beta):
        old = await job_store.create(acme)

        stored = await job_store.replace_all([replace(beta, id=old.id)])

        assert len(stored) == 1
        assert stored[0].id > old.id
        assert await job_store.find_by_id(old.id) is None
        assert await job_store.find_all() == stored

    async def test_ids_are_not_reused_after_replace(self, job_store, acme):
        first = await job_store.create(acme)
        await job_store.replace_all([])

        created = await job_store.create(acme)

        assert created.id > first.id

    async def test_invalid_input_leaves_store_untouched(self, job_store, acme, beta):
        existing = await _seed(job_store, acme)

        with pytest.raises(ValidationError):
            await job_store.replace_all([beta, replace(acme, company="")])

        assert await job_store.find_all() == existing

    async def test_status_is_required(self, job_store, acme):
        with pytest.raises(ValidationError) as exc_info:
            await job_store.replace_all([replace(acme, status=None)])
        assert exc_info.value.field == "status"


class TestInMemoryStore:
    """Behaviour specific to InMemoryRecordStore."""

    async def test_returns_copies(self, acme):
        store = InMemoryRecordStore(JobApplication)
        created = await store.create(acme)

        created.company = "Changed"
        found = await store.find_by_id(created.id)
        found.company = "Changed again"

        assert (await store.find_by_id(created.id)).company == "Acme"

    async def test_seed_records_keep_ids(self, acme):
        store = InMemoryRecordStore(JobApplication, records=[replace(acme, id=7)])

        created = await store.create(acme)

        assert (await store.find_by_id(7)).company == "Acme"
        assert created.id == 8

    async def test_seed_rejects_duplicate_ids(self, acme, beta):
        with pytest.raises(ValidationError, match="Duplicate id: 3"):
            InMemoryRecordStore(
                JobApplication, records=[replace(acme, id=3), replace(beta, id=3)]
            )

    async def test_seed_rejects_missing_ids(self, acme):
        with pytest.raises(ValidationError):
            InMemoryRecordStore(JobApplication, records=[acme])

    def test_workflow_must_match_record_kind(self):
        with pytest.raises(ValueError):
            InMemoryRecordStore(JobApplication, workflow=TICKET_WORKFLOW)

    async def test_stores_are_independent(self, acme):
        first = InMemoryRecordStore(JobApplication)
        second = InMemoryRecordStore(JobApplication)
        await first.create(acme)

        assert await second.find_all() == []
        assert (await second.create(acme)).id == 1

    async def test_custom_workflow_is_applied(self, vpn_ticket):
        from record_tracker.records.workflow import WorkflowEngine

        locked = WorkflowEngine(
            TicketStatus,
            TicketStatus.OPEN,
            lambda current, target: target != TicketStatus.NEW,
        )
        store = InMemoryRecordStore(Ticket, workflow=locked)

        created = await store.create(vpn_ticket)

        assert created.status is TicketStatus.OPEN
        with pytest.raises(InvalidTransitionError):
            await store.update_status(created.id, "new")
