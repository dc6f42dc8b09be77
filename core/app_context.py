from dataclasses import dataclass
from typing import Any, Dict, Optional

from core.applications.engine import ApplicationLifecycleEngine
from core.config_loader import AppConfig, NotificationConfig
from core.geo.distance import GeoDistanceService
from core.geo.geocoder import PostcodeGeocoder
from core.jobs.bulk import BulkJobImporter
from core.jobs.manager import JobPostManager
from core.matching.scorer import MatchScorer
from core.queries.reviews import ReviewStatsClient
from core.queries.service import QueryLayer
from core.scheduling.conflicts import ConflictResolver
from database.database import DatabaseManager
from database.uow import unit_of_work
from notification.channels import NotificationChannel, NotificationChannelFactory
from notification.service import NotificationDispatcher, NotificationService


@dataclass
class AppContext:
    """Application context container that holds all wired dependencies.

    Services hold a session factory, never a session: every operation opens
    its own unit of work.
    """
    config: AppConfig
    database: DatabaseManager
    geocoder: PostcodeGeocoder
    distance_service: GeoDistanceService
    job_manager: JobPostManager
    bulk_importer: BulkJobImporter
    engine: ApplicationLifecycleEngine
    queries: QueryLayer
    notification_service: Optional[NotificationService] = None
    dispatcher: Optional[NotificationDispatcher] = None
    review_client: Optional[ReviewStatsClient] = None

    @classmethod
    def build(cls, config: AppConfig, database: Optional[DatabaseManager] = None) -> "AppContext":
        """Build an AppContext from config.

        Args:
            config: Loaded application configuration
            database: Pre-built database manager (tests pass an in-memory one)

        Returns:
            Fully wired AppContext instance
        """
        database = database or DatabaseManager(config.database.url, echo=config.database.echo)
        session_factory = database.session_factory

        geocoder = PostcodeGeocoder(
            base_url=config.geocoder.url,
            request_timeout_seconds=config.geocoder.request_timeout_seconds,
        )
        distance_service = GeoDistanceService(geocoder)
        scorer = MatchScorer()

        notification_service = None
        dispatcher = None
        if config.notifications.enabled:
            notification_service = cls._build_notification_service(config.notifications, session_factory)
            dispatcher = NotificationDispatcher(
                notification_service,
                max_attempts=config.notifications.max_attempts,
                wait_seconds=config.notifications.retry_wait_seconds,
            )

        review_client = None
        if config.reviews.url:
            review_client = ReviewStatsClient(
                base_url=config.reviews.url,
                request_timeout_seconds=config.reviews.request_timeout_seconds,
            )

        job_manager = JobPostManager(
            session_factory,
            max_recurring_children=config.scheduling.max_recurring_children,
        )
        bulk_importer = BulkJobImporter(
            session_factory,
            job_manager,
            geocoder=geocoder,
            max_rows=config.bulk_import.max_rows,
            verify_postcodes=config.bulk_import.verify_postcodes,
        )
        engine = ApplicationLifecycleEngine(
            session_factory,
            dispatcher=dispatcher,
            conflict_resolver=ConflictResolver(strict=config.scheduling.strict_time_parsing),
            admin_user_id=config.notifications.admin_user_id,
        )
        queries = QueryLayer(
            session_factory,
            distance_service=distance_service,
            scorer=scorer,
            review_client=review_client,
            default_limit=config.pagination.default_limit,
            max_limit=config.pagination.max_limit,
        )

        return cls(
            config=config,
            database=database,
            geocoder=geocoder,
            distance_service=distance_service,
            job_manager=job_manager,
            bulk_importer=bulk_importer,
            engine=engine,
            queries=queries,
            notification_service=notification_service,
            dispatcher=dispatcher,
            review_client=review_client,
        )

    @staticmethod
    def _build_notification_service(notification_config: NotificationConfig, session_factory) -> NotificationService:
        """Build the notification service with the channels enabled in config."""
        channels: Dict[str, NotificationChannel] = {}
        for channel_type, channel_config in notification_config.channels.items():
            if not channel_config.enabled:
                continue
            kwargs: Dict[str, Any] = {}
            if channel_type == 'in_app':
                kwargs['session_factory'] = session_factory
            elif channel_type == 'webhook':
                kwargs['url'] = channel_config.recipient
            channels[channel_type] = NotificationChannelFactory.get_channel(channel_type, **kwargs)

        def email_lookup(user_id):
            with unit_of_work(session_factory) as uow:
                return uow.users.email_for(user_id)

        return NotificationService(
            channels=channels,
            email_lookup=email_lookup,
            base_url=notification_config.base_url,
            enabled=notification_config.enabled,
        )

    def close(self):
        self.geocoder.close()
        if self.review_client is not None:
            self.review_client.close()
        self.database.dispose()
