#!/usr/bin/env python3
"""
Tests for QueryLayer listings, pagination, enrichment and visibility rules.
"""

import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
import requests

from core.exceptions import AccessDeniedError, NotFoundError, ValidationError
from core.geo.distance import Distance, GeoDistanceService
from core.queries.reviews import ReviewStatsClient
from core.queries.service import Page, QueryLayer
from database.models import ApplicationStatus, JobStatus, Language, Preference, UserRole
from tests.fixtures.factories import (
    TODAY,
    create_application,
    create_job,
    create_reference,
    create_user,
    make_session_factory,
)

pytestmark = pytest.mark.db

DISTANCES_KM = {'E1 6AN': 5.0, 'N1 9GU': 2.0, 'SW1A 1AA': 9.0}


def fake_distance(postcode_a, postcode_b, memo=None):
    km = DISTANCES_KM.get(postcode_b, DISTANCES_KM.get(postcode_a, 999))
    return Distance(km=km, miles=round(km * 0.6214, 1))


class QueryTestCase(unittest.TestCase):

    def setUp(self):
        self.sf = make_session_factory()
        self.distance_service = MagicMock(spec=GeoDistanceService)
        self.distance_service.distance.side_effect = fake_distance
        self.review_client = MagicMock(spec=ReviewStatsClient)
        self.review_client.get_review_stats.return_value = {'average': 4.5, 'count': 2}
        self.queries = QueryLayer(
            self.sf,
            distance_service=self.distance_service,
            review_client=self.review_client,
            default_limit=2,
            max_limit=5,
        )
        self.owner_id = create_user(self.sf, role=UserRole.INDIVIDUAL)


class TestPage(unittest.TestCase):

    def test_pagination_flags(self):
        page = Page(items=[], page=2, limit=10, total=25)

        self.assertEqual(page.to_dict()['pagination'], {
            'page': 2, 'limit': 10, 'total': 25, 'total_pages': 3, 'has_next': True, 'has_prev': True,
        })

    def test_empty_result(self):
        page = Page(items=[], page=1, limit=10, total=0)

        self.assertEqual(page.total_pages, 0)
        self.assertFalse(page.has_next)
        self.assertFalse(page.has_prev)


class TestGetAllJobPosts(QueryTestCase):

    def test_anonymous_listing_is_ordered_by_date_and_paginated(self):
        later = create_job(self.sf, self.owner_id, job_date=TODAY + timedelta(days=2))
        first = create_job(self.sf, self.owner_id, job_date=TODAY, start_time="08:00", end_time="09:00")
        second = create_job(self.sf, self.owner_id, job_date=TODAY, start_time="10:00", end_time="11:00")
        create_job(self.sf, self.owner_id, status=JobStatus.CLOSED, start_time="12:00", end_time="13:00")

        page = self.queries.get_all_job_posts({'page': 1})

        self.assertEqual(page.total, 3)
        self.assertEqual([i['id'] for i in page.items], [str(first), str(second)])
        self.assertNotIn('match_score', page.items[0])

        page = self.queries.get_all_job_posts({'page': 2})
        self.assertEqual([i['id'] for i in page.items], [str(later)])
        self.distance_service.distance.assert_not_called()

    def test_filters(self):
        create_job(self.sf, self.owner_id, postcode="E1 6AN", payment_type="fixed")
        match = create_job(self.sf, self.owner_id, postcode="N1 9GU", start_time="07:00", end_time="08:00")

        page = self.queries.get_all_job_posts({'postcode': "n1", 'payment_type': "hourly"})

        self.assertEqual([i['id'] for i in page.items], [str(match)])

    def test_date_range_filter(self):
        create_job(self.sf, self.owner_id, job_date=TODAY)
        inside = create_job(self.sf, self.owner_id, job_date=TODAY + timedelta(days=3))

        page = self.queries.get_all_job_posts({
            'date_from': (TODAY + timedelta(days=1)).isoformat(),
            'date_to': (TODAY + timedelta(days=5)).isoformat(),
        })

        self.assertEqual([i['id'] for i in page.items], [str(inside)])

    def test_worker_listing_sorted_by_distance_with_status_and_score(self):
        english = create_reference(self.sf, Language, "English")
        worker = create_user(self.sf, gender="female", postcode="SE1 7PB", language_ids=[english])
        far = create_job(self.sf, self.owner_id, postcode="SW1A 1AA", start_time="08:00", end_time="09:00")
        near = create_job(self.sf, self.owner_id, postcode="N1 9GU", start_time="10:00", end_time="11:00",
                          caregiver_gender="male", language_ids=[english])
        middle = create_job(self.sf, self.owner_id, postcode="E1 6AN", start_time="12:00", end_time="13:00")
        application = create_application(self.sf, far, worker)

        page = self.queries.get_all_job_posts({'limit': 5}, requesting_worker_id=worker)

        self.assertEqual([i['id'] for i in page.items], [str(near), str(middle), str(far)])
        by_id = {i['id']: i for i in page.items}
        self.assertEqual(by_id[str(near)]['distance']['km'], 2.0)
        self.assertEqual(by_id[str(near)]['match_score'], 67)
        self.assertEqual(by_id[str(middle)]['match_score'], 100)
        self.assertEqual(by_id[str(far)]['application_status'], ApplicationStatus.PENDING)
        self.assertEqual(by_id[str(far)]['application_id'], str(application))
        self.assertIsNone(by_id[str(middle)]['application_status'])

    def test_worker_listing_paginates_after_sorting(self):
        worker = create_user(self.sf)
        create_job(self.sf, self.owner_id, postcode="SW1A 1AA", start_time="08:00", end_time="09:00")
        create_job(self.sf, self.owner_id, postcode="N1 9GU", start_time="10:00", end_time="11:00")
        middle = create_job(self.sf, self.owner_id, postcode="E1 6AN", start_time="12:00", end_time="13:00")

        page = self.queries.get_all_job_posts({'page': 1, 'limit': 2}, requesting_worker_id=worker)

        self.assertEqual(page.total, 3)
        self.assertEqual(page.items[1]['id'], str(middle))

    def test_limit_is_clamped_and_bad_paging_rejected(self):
        self.assertEqual(self.queries.get_all_job_posts({'limit': 50}).limit, 5)
        with self.assertRaises(ValidationError):
            self.queries.get_all_job_posts({'page': 0})
        with self.assertRaises(ValidationError):
            self.queries.get_all_job_posts({'limit': "ten"})
        with self.assertRaises(ValidationError):
            self.queries.get_all_job_posts({'date_from': "tomorrow"})

    def test_listing_without_distance_service_uses_sentinel(self):
        queries = QueryLayer(self.sf)
        worker = create_user(self.sf)
        create_job(self.sf, self.owner_id)

        page = queries.get_all_job_posts(requesting_worker_id=worker)

        self.assertEqual(page.items[0]['distance'], {'km': 999, 'miles': 999})


class TestGetJobPost(QueryTestCase):

    def test_recurring_parent_lists_children(self):
        parent = create_job(self.sf, self.owner_id, recurring_frequency='weekly',
                            recurring_weekdays=['monday'], recurring_end_date=TODAY + timedelta(days=14))
        child = create_job(self.sf, self.owner_id, job_date=TODAY + timedelta(days=7), parent_job_id=parent)

        view = self.queries.get_job_post(parent)

        self.assertEqual(view['children'], [{
            'id': str(child),
            'job_date': (TODAY + timedelta(days=7)).isoformat(),
            'status': JobStatus.OPEN,
        }])

    def test_worker_sees_own_application_status(self):
        job_id = create_job(self.sf, self.owner_id)
        worker = create_user(self.sf)
        create_application(self.sf, job_id, worker, status=ApplicationStatus.REJECTED)

        view = self.queries.get_job_post(job_id, requesting_user_id=worker)
        self.assertEqual(view['application_status'], ApplicationStatus.REJECTED)

        owner_view = self.queries.get_job_post(job_id, requesting_user_id=self.owner_id)
        self.assertNotIn('application_status', owner_view)

    def test_deleted_or_malformed_id_is_not_found(self):
        job_id = create_job(self.sf, self.owner_id, is_deleted=True)

        with self.assertRaises(NotFoundError):
            self.queries.get_job_post(job_id)
        with self.assertRaises(NotFoundError):
            self.queries.get_job_post("not-a-uuid")


class TestOwnerJobPosts(QueryTestCase):

    def test_owner_listing_with_status_filter(self):
        create_job(self.sf, self.owner_id, job_date=TODAY)
        closed = create_job(self.sf, self.owner_id, job_date=TODAY + timedelta(days=1), status=JobStatus.CLOSED)
        create_job(self.sf, create_user(self.sf, role=UserRole.INDIVIDUAL))

        everything = self.queries.get_owner_job_posts(self.owner_id, {'limit': 5})
        self.assertEqual(everything.total, 2)
        self.assertEqual(everything.items[0]['id'], str(closed))

        only_closed = self.queries.get_owner_job_posts(self.owner_id, {'status': JobStatus.CLOSED})
        self.assertEqual([i['id'] for i in only_closed.items], [str(closed)])

        with self.assertRaises(ValidationError):
            self.queries.get_owner_job_posts(self.owner_id, {'status': 'archived'})


class TestJobApplications(QueryTestCase):

    def setUp(self):
        super().setUp()
        self.english = create_reference(self.sf, Language, "English")
        self.pets = create_reference(self.sf, Preference, "Comfortable with pets")
        self.job_id = create_job(self.sf, self.owner_id, caregiver_gender="female", postcode="E1 6AN",
                                 language_ids=[self.english], preference_ids=[self.pets])

    def test_candidates_ranked_by_match_with_enrichment(self):
        weak = create_user(self.sf, gender="male", postcode="N1 9GU")
        strong = create_user(self.sf, name="Priya", gender="female", postcode="N1 9GU", language_ids=[self.english])
        create_application(self.sf, self.job_id, weak)
        create_application(self.sf, self.job_id, strong, preference_ids=[self.pets])

        page = self.queries.get_job_applications(self.job_id, self.owner_id, {'limit': 5})

        self.assertEqual([i['worker_id'] for i in page.items], [str(strong), str(weak)])
        top = page.items[0]
        self.assertEqual(top['match_score'], 100)
        self.assertEqual(top['match_breakdown'], {'gender': 1.0, 'languages': 1.0, 'preferences': 1.0})
        self.assertEqual(top['worker']['name'], "Priya")
        self.assertEqual([l['name'] for l in top['worker']['languages']], ["English"])
        self.assertEqual(top['distance']['km'], 2.0)
        self.assertEqual(top['review_stats'], {'average': 4.5, 'count': 2})
        self.assertEqual(page.items[1]['match_score'], 0)

    def test_review_stats_only_fetched_for_returned_page(self):
        for _ in range(3):
            create_application(self.sf, self.job_id, create_user(self.sf))

        page = self.queries.get_job_applications(self.job_id, self.owner_id, {'limit': 2})

        self.assertEqual(page.total, 3)
        self.assertEqual(self.review_client.get_review_stats.call_count, 2)

    def test_review_failure_does_not_fail_listing(self):
        self.review_client.get_review_stats.side_effect = requests.ConnectionError("down")
        create_application(self.sf, self.job_id, create_user(self.sf))

        page = self.queries.get_job_applications(self.job_id, self.owner_id)

        self.assertIsNone(page.items[0]['review_stats'])

    def test_only_owner_may_list(self):
        with self.assertRaises(AccessDeniedError):
            self.queries.get_job_applications(self.job_id, create_user(self.sf, role=UserRole.INDIVIDUAL))

    def test_status_filter(self):
        create_application(self.sf, self.job_id, create_user(self.sf))
        rejected = create_application(self.sf, self.job_id, create_user(self.sf), status=ApplicationStatus.REJECTED)

        page = self.queries.get_job_applications(self.job_id, self.owner_id, {'status': ApplicationStatus.REJECTED})

        self.assertEqual([i['id'] for i in page.items], [str(rejected)])


class TestWorkerApplications(QueryTestCase):

    def test_worker_sees_own_applications_with_job(self):
        worker = create_user(self.sf)
        job_id = create_job(self.sf, self.owner_id)
        application = create_application(self.sf, job_id, worker)
        create_application(self.sf, create_job(self.sf, self.owner_id, start_time="18:00", end_time="19:00"),
                           create_user(self.sf))

        page = self.queries.get_worker_applications(worker)

        self.assertEqual([i['id'] for i in page.items], [str(application)])
        self.assertEqual(page.items[0]['job_post']['id'], str(job_id))

    def test_application_visible_to_parties_only(self):
        worker = create_user(self.sf)
        application = create_application(self.sf, create_job(self.sf, self.owner_id), worker)

        self.assertEqual(self.queries.get_application(application, worker)['id'], str(application))
        self.assertEqual(self.queries.get_application(application, self.owner_id)['id'], str(application))
        with self.assertRaises(AccessDeniedError):
            self.queries.get_application(application, create_user(self.sf))

    def test_stats_cover_every_status(self):
        worker = create_user(self.sf)
        create_application(self.sf, create_job(self.sf, self.owner_id), worker)
        create_application(self.sf, create_job(self.sf, self.owner_id, start_time="18:00", end_time="19:00"),
                           worker, status=ApplicationStatus.REJECTED)

        stats = self.queries.get_application_stats(worker, UserRole.HEALTHCARE)

        self.assertEqual(stats['total'], 2)
        self.assertEqual(set(stats['by_status']), set(ApplicationStatus.ALL))
        self.assertEqual(stats['by_status'][ApplicationStatus.PENDING], 1)
        self.assertEqual(stats['by_status'][ApplicationStatus.ACCEPTED], 0)

        owner_stats = self.queries.get_application_stats(self.owner_id, UserRole.INDIVIDUAL)
        self.assertEqual(owner_stats['total'], 2)


class TestOwnerApplications(QueryTestCase):

    def setUp(self):
        super().setUp()
        self.morning = create_job(self.sf, self.owner_id, start_time="08:00", end_time="10:00")
        self.evening = create_job(self.sf, self.owner_id, start_time="18:00", end_time="20:00")
        self.first, self.second, self.third = create_user(self.sf), create_user(self.sf), create_user(self.sf)

        def at(hour):
            return datetime(2030, 1, 1, hour, tzinfo=timezone.utc)

        self.oldest = create_application(self.sf, self.morning, self.first, created_at=at(9))
        self.middle = create_application(self.sf, self.evening, self.second,
                                         status=ApplicationStatus.REJECTED, created_at=at(10))
        self.newest = create_application(self.sf, self.evening, self.third, created_at=at(11))

    def test_applications_across_all_posts_newest_first(self):
        page = self.queries.get_owner_applications(self.owner_id)

        self.assertEqual(
            [i['id'] for i in page.items],
            [str(self.newest), str(self.middle), str(self.oldest)],
        )
        self.assertEqual(page.items[2]['job_post']['id'], str(self.morning))
        self.assertEqual(page.total, 3)

    def test_status_filter_and_pagination(self):
        pending = self.queries.get_owner_applications(self.owner_id, {'status': ApplicationStatus.PENDING})
        self.assertEqual([i['id'] for i in pending.items], [str(self.newest), str(self.oldest)])

        second_page = self.queries.get_owner_applications(self.owner_id, {'page': 2, 'limit': 2})
        self.assertEqual([i['id'] for i in second_page.items], [str(self.oldest)])
        self.assertFalse(second_page.has_next)

        with self.assertRaises(ValidationError):
            self.queries.get_owner_applications(self.owner_id, {'status': 'archived'})

    def test_deleted_posts_and_other_owners_are_excluded(self):
        other_owner = create_user(self.sf, role=UserRole.INDIVIDUAL)
        create_application(self.sf, create_job(self.sf, other_owner), create_user(self.sf))
        deleted = create_job(self.sf, self.owner_id, start_time="12:00", end_time="13:00", is_deleted=True)
        create_application(self.sf, deleted, create_user(self.sf))

        page = self.queries.get_owner_applications(self.owner_id)

        self.assertEqual(page.total, 3)
        self.assertEqual(self.queries.get_owner_applications(other_owner).total, 1)

    def test_malformed_owner_is_refused(self):
        with self.assertRaises(AccessDeniedError):
            self.queries.get_owner_applications("owner-1")


class TestJobOptions(QueryTestCase):

    def test_reference_lists_and_enumerations(self):
        create_reference(self.sf, Language, "Welsh")
        create_reference(self.sf, Language, "Arabic")

        options = self.queries.get_job_options()

        self.assertEqual([l['name'] for l in options['languages']], ["Arabic", "Welsh"])
        self.assertEqual(options['care_needs'], [])
        self.assertIn('oneDay', options['job_types'])
        self.assertIn('hourly', options['payment_types'])
        self.assertIn('any', options['caregiver_genders'])
        self.assertTrue(options['cancellation_reasons'])


if __name__ == '__main__':
    unittest.main()
