from temporalio.client import Client

from order_admin.config import Settings, get_settings


async def get_temporal_client(settings: Settings | None = None) -> Client:
    """
    Khởi tạo và trả về Temporal client
    """
    settings = settings or get_settings()
    client = await Client.connect(settings.temporal_address, namespace=settings.temporal_namespace)
    return client
