"""Application environment assembled from settings."""

from dataclasses import dataclass

import httpx
import structlog

from countries.dispatch import SerialDispatcher
from countries.fetch.client import HttpFetcher
from countries.fetch.metrics import FetchMetrics
from countries.images.cache import InMemoryImageCache
from countries.images.interactor import RealImagesInteractor
from countries.images.metrics import ImageMetrics
from countries.images.web import HttpImageWebRepository
from countries.loadable.binding import Subject
from countries.settings.app import AppSettings
from countries.store.metrics import StoreMetrics
from countries.store.repository import CountriesDbRepository
from countries.store.store import SqliteStore


logger = structlog.get_logger()


@dataclass
class Environment:
    """Long-lived collaborators shared by the application.

    Attributes:
        main: Context owning UI state and store reads.
        background: Context for store open and writes.
        image_worker: Context for image cache lookups and downloads.
        memory_warning: Host memory-pressure signal.
        image_cache: Cache shared by every images interactor.
        images: Images interactor.
        store: Persistent store.
        countries_db: Countries persistence.
    """

    main: SerialDispatcher
    background: SerialDispatcher
    image_worker: SerialDispatcher
    memory_warning: Subject[None]
    image_cache: InMemoryImageCache
    images: RealImagesInteractor
    store: SqliteStore
    countries_db: CountriesDbRepository

    def close(self) -> None:
        """Tear everything down; queued work finishes first."""
        self.images.close()
        self.image_worker.shutdown()
        self.background.shutdown()
        self.main.dispatch(self.store.close)
        self.main.shutdown()
        logger.info(
            "environment_closed",
            fetch=FetchMetrics.get_instance().to_dict(),
            images=ImageMetrics.get_instance().to_dict(),
            store=StoreMetrics.get_instance().to_dict(),
        )


def bootstrap(
    settings: AppSettings | None = None,
    transport: httpx.BaseTransport | None = None,
) -> Environment:
    """Build the application environment.

    Args:
        settings: Application settings (loaded from the environment if None).
        transport: Optional httpx transport for all image requests.

    Returns:
        The assembled environment. The store starts opening immediately.
    """
    settings = settings or AppSettings()

    main = SerialDispatcher("main")
    background = SerialDispatcher("coredata")
    image_worker = SerialDispatcher("images")
    memory_warning: Subject[None] = Subject()

    fetcher = HttpFetcher(settings.fetch_config(), transport=transport)
    image_cache = InMemoryImageCache(settings.image_cache_max_entries)
    images = RealImagesInteractor(
        web_repository=HttpImageWebRepository(fetcher, settings.conversion_base_url),
        in_memory_cache=image_cache,
        memory_warning=memory_warning,
        main=main,
        worker=image_worker,
        target_width=settings.image_target_width,
    )
    store = SqliteStore(
        main=main,
        background=background,
        directory=settings.db_directory,
        version=settings.db_version,
    )

    logger.info(
        "environment_ready",
        conversion_base_url=settings.conversion_base_url,
        db_path=str(store.db_path),
    )
    return Environment(
        main=main,
        background=background,
        image_worker=image_worker,
        memory_warning=memory_warning,
        image_cache=image_cache,
        images=images,
        store=store,
        countries_db=CountriesDbRepository(store),
    )
