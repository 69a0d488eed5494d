from dependency_injector import containers, providers

from shopapi.config import Settings
from shopapi.database.session import get_db
from shopapi.services.auth_service import AuthService
from shopapi.services.aws_service import AwsService
from shopapi.services.checkout_service import CheckoutService
from shopapi.services.fulfillment_service import FulfillmentService
from shopapi.services.mail_service import MailService
from shopapi.services.outbox_service import OutboxService
from shopapi.services.payment_service import PaymentService
from shopapi.services.point_service import PointService
from shopapi.services.return_service import ReturnService


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)


class RepositoryModule(containers.DeclarativeContainer):
    """Database session."""

    get_db = providers.Resource(get_db)


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies."""

    config = providers.DependenciesContainer()
    repositories = providers.DependenciesContainer()

    aws_service = providers.Factory(AwsService, settings=config.config)
    mail_service = providers.Factory(MailService, settings=config.config, aws_service=aws_service)
    auth_service = providers.Factory(AuthService, db=repositories.get_db, settings=config.config)
    point_service = providers.Factory(PointService, db=repositories.get_db)
    checkout_service = providers.Factory(CheckoutService, db=repositories.get_db, settings=config.config)
    payment_service = providers.Factory(PaymentService, db=repositories.get_db, settings=config.config)
    return_service = providers.Factory(ReturnService, db=repositories.get_db, settings=config.config)
    fulfillment_service = providers.Factory(
        FulfillmentService,
        db=repositories.get_db,
        settings=config.config,
        mail_service=mail_service,
    )
    outbox_service = providers.Factory(
        OutboxService,
        db=repositories.get_db,
        settings=config.config,
        fulfillment_service=fulfillment_service,
    )


class Container(containers.DeclarativeContainer):
    """Application container."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "shopapi.routers.point_router",
            "shopapi.routers.admin_points_router",
            "shopapi.routers.payment_router",
            "shopapi.routers.return_router",
            "shopapi.routers.outbox_router",
        ],
    )

    config = providers.Container(ConfigModule)
    repositories = providers.Container(RepositoryModule)
    services = providers.Container(
        ServiceModule, config=config, repositories=repositories
    )
